"""Slot availability endpoints."""

from fastapi import APIRouter, Query, status

from app.config import settings
from app.core.exceptions import ValidationException
from app.core.timeslots import check_advance_window, parse_date
from app.dependencies import CurrentUser, DatabaseSession, Directory, SystemClock
from app.schemas.slots import AvailableSlotsResponse, SlotResponse
from app.services.slot_service import SlotGenerator, SlotStore

router = APIRouter()


@router.get(
    "/available",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    tags=["Slots"],
    summary="List free slot times",
)
async def list_available_slots(
    current_user: CurrentUser,
    db: DatabaseSession,
    directory: Directory,
    clock: SystemClock,
    doctor_identifier: str = Query(..., min_length=1),
    date: str = Query(..., description="YYYY-MM-DD"),
) -> AvailableSlotsResponse:
    """
    List the free start times of a doctor on a date.

    Slots for dates outside the pre-generated horizon are created on first
    request, the same way booking does, so the caller must be signed in and
    the date must lie inside the advance booking window.

    Args:
        current_user: Authenticated user
        db: Database session
        directory: Doctor directory
        clock: Wall clock for date window checks
        doctor_identifier: Doctor ID, doctor's user ID or doctor's email
        date: Date to inspect

    Returns:
        Free start times as ``HH:MM:SS``
    """
    doctor = await directory.resolve_doctor(db, doctor_identifier)
    slot_date = parse_date(date)

    if slot_date < clock.today():
        raise ValidationException("Cannot list availability for a past date")
    check_advance_window(slot_date, clock.today(), settings.slot_max_advance_days)

    await SlotGenerator(db).generate_for_date(doctor.id, slot_date)
    times = await SlotStore(db).list_available_times(doctor.id, slot_date)

    return AvailableSlotsResponse(doctor_id=doctor.id, date=slot_date, times=times)


@router.get(
    "/",
    response_model=list[SlotResponse],
    status_code=status.HTTP_200_OK,
    tags=["Slots"],
    summary="List a doctor's slots with status",
)
async def list_slots(
    db: DatabaseSession,
    directory: Directory,
    doctor_identifier: str = Query(..., min_length=1),
    date: str = Query(..., description="YYYY-MM-DD"),
) -> list[SlotResponse]:
    """
    List every existing slot of a doctor on a date, booked or not.

    Args:
        db: Database session
        directory: Doctor directory
        doctor_identifier: Doctor ID, doctor's user ID or doctor's email
        date: Date to inspect

    Returns:
        Slots ordered by start time
    """
    doctor = await directory.resolve_doctor(db, doctor_identifier)
    rows = await SlotStore(db).list_for_date(doctor.id, parse_date(date))
    return [SlotResponse.model_validate(row) for row in rows]
