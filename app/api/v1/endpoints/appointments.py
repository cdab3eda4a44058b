"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import (
    CurrentUser,
    DatabaseSession,
    Directory,
    Notifier,
    SystemClock,
)
from app.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    BookingRequest,
    RescheduleRequest,
)
from app.services.appointment_service import AppointmentService
from app.services.booking_service import BookingService

router = APIRouter()


@router.post(
    "/book",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book a slot",
)
async def book_appointment(
    data: BookingRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
    clock: SystemClock,
    directory: Directory,
) -> AppointmentResponse:
    """
    Book a doctor's slot for the authenticated patient.

    Times are accepted as ``H:MM AM/PM`` or ``HH:MM:SS``. Returns 409 when
    the slot is already taken, including when a concurrent request won it.

    Args:
        data: Booking request
        current_user: Authenticated patient
        db: Database session
        notifier: Notice sender for the doctor
        clock: Wall clock for past-date checks
        directory: Doctor/patient directory

    Returns:
        Created appointment
    """
    patient_id = directory.resolve_patient(current_user, data.patient_identifier)
    service = BookingService(db, notifier=notifier, clock=clock, directory=directory)
    return await service.book(
        doctor_identifier=data.doctor_identifier,
        appointment_date=data.date,
        appointment_time=data.time,
        patient_id=patient_id,
        details=data.details,
    )


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    current_user: CurrentUser,
    db: DatabaseSession,
    directory: Directory,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments visible to the authenticated user with filtering.

    Args:
        current_user: Authenticated user
        db: Database session
        directory: Doctor/patient directory
        status_filter: Filter by status
        from_date: Earliest appointment date
        to_date: Latest appointment date
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )

    service = AppointmentService(db, directory=directory)
    return await service.list_appointments(current_user, filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    directory: Directory,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        HTTPException: If appointment not found or access denied
    """
    service = AppointmentService(db, directory=directory)
    return await service.get_appointment(appointment_id, current_user)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: RescheduleRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
    clock: SystemClock,
    directory: Directory,
) -> AppointmentResponse:
    """
    Move an appointment to another free slot of the same doctor.

    On failure the appointment keeps its current slot.

    Args:
        appointment_id: Appointment ID
        data: Target date and time
        current_user: Authenticated user
        db: Database session
        notifier: Notice sender for the doctor
        clock: Wall clock for past-date checks
        directory: Doctor/patient directory

    Returns:
        Rescheduled appointment
    """
    service = AppointmentService(db, notifier=notifier, clock=clock, directory=directory)
    return await service.reschedule(appointment_id, current_user, data.new_date, data.new_time)


@router.patch(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Complete appointment",
)
async def complete_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    directory: Directory,
) -> AppointmentResponse:
    """Mark an appointment as completed (doctor only)."""
    service = AppointmentService(db, directory=directory)
    return await service.complete(appointment_id, current_user)


@router.delete(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
    directory: Directory,
) -> AppointmentResponse:
    """
    Cancel an appointment and free its slot.

    The appointment is kept with status ``canceled``.

    Args:
        appointment_id: Appointment ID
        current_user: Authenticated user
        db: Database session
        notifier: Notice sender for the doctor
        directory: Doctor/patient directory

    Returns:
        Canceled appointment
    """
    service = AppointmentService(db, notifier=notifier, directory=directory)
    return await service.cancel(appointment_id, current_user)
