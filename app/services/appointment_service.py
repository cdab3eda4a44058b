"""Appointment lifecycle: reads, cancellation, rescheduling and completion."""

from datetime import UTC, date, datetime, time
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select, true, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from app.core.timeslots import format_time, normalize_time, parse_date
from app.models.appointments import appointments
from app.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
)
from app.schemas.slots import SlotStatus
from app.services.directory_service import DirectoryService
from app.services.notification_service import NotificationService
from app.services.slot_service import SlotStore
from app.services.transactions import atomic

logger = structlog.get_logger(__name__)


class AppointmentService:
    """Service for managing booked appointments."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationService | None = None,
        clock: Clock = system_clock,
        directory: DirectoryService | None = None,
    ):
        """Initialize service with database session and collaborators."""
        self.db = db
        self.notifier = notifier
        self.clock = clock
        self.directory = directory or DirectoryService()
        self.slots = SlotStore(db)

    async def _load(self, appointment_id: UUID, for_update: bool = False) -> dict[str, Any]:
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        row = result.mappings().first()

        if not row:
            raise NotFoundException("Appointment not found")

        return dict(row)

    async def _doctor_id_for(self, user: dict) -> UUID | None:
        doctor = await self.directory.get_doctor_for_user(self.db, user["id"])
        return doctor.id if doctor else None

    async def _check_access(self, row: dict[str, Any], user: dict) -> None:
        """Allow the appointment's patient, its doctor and admins."""
        role = user["role"]

        if role == "admin":
            return
        if role == "patient" and row["patient_id"] == user["id"]:
            return
        if role == "doctor" and row["doctor_id"] == await self._doctor_id_for(user):
            return

        raise ForbiddenException("Access denied to this appointment")

    def _notify(self, doctor_id: UUID, subject: str, body: str, notification_type: str) -> None:
        if self.notifier:
            self.notifier.dispatch(doctor_id, subject, body, notification_type=notification_type)

    async def get_appointment(self, appointment_id: UUID, user: dict) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user doesn't have access
        """
        row = await self._load(appointment_id)
        await self._check_access(row, user)
        return AppointmentResponse.model_validate(row)

    async def list_appointments(
        self,
        user: dict,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments visible to a user with filtering and pagination.

        Patients see their own bookings, doctors see bookings with their
        practice and admins see everything.
        """
        conditions = []

        if user["role"] == "patient":
            conditions.append(appointments.c.patient_id == user["id"])
        elif user["role"] == "doctor":
            doctor_id = await self._doctor_id_for(user)
            if doctor_id is None:
                return AppointmentListResponse(
                    total=0, page=filters.page, page_size=filters.page_size, items=[]
                )
            conditions.append(appointments.c.doctor_id == doctor_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.from_date:
            conditions.append(appointments.c.appointment_date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.appointment_date <= filters.to_date)

        where_clause = and_(*conditions) if conditions else true()

        count_stmt = select(func.count()).select_from(appointments).where(where_clause)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(appointments)
            .where(where_clause)
            .order_by(appointments.c.appointment_date.desc(), appointments.c.appointment_time.desc())
            .limit(filters.page_size)
            .offset((filters.page - 1) * filters.page_size)
        )
        result = await self.db.execute(stmt)
        items = [AppointmentResponse.model_validate(dict(row)) for row in result.mappings().all()]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )

    async def cancel(self, appointment_id: UUID, user: dict) -> AppointmentResponse:
        """
        Cancel a booked appointment and release its slot.

        The appointment row is kept with status ``canceled``.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user doesn't have access
            ConflictException: If the appointment is no longer booked
        """
        async with atomic(self.db, "cancel", appointment_id=str(appointment_id)):
            row = await self._load(appointment_id, for_update=True)
            await self._check_access(row, user)

            if row["status"] != AppointmentStatus.BOOKED.value:
                raise ConflictException(f"Appointment is already {row['status']}")

            await self.slots.lock_many([row["slot_id"]])
            await self.slots.set_status(row["slot_id"], SlotStatus.AVAILABLE)

            now = datetime.now(UTC)
            result = await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(
                    status=AppointmentStatus.CANCELED.value,
                    canceled_at=now,
                    updated_at=now,
                )
                .returning(appointments)
            )
            updated = result.mappings().one()
            await self.db.commit()

        appointment = AppointmentResponse.model_validate(dict(updated))
        logger.info("appointment_canceled", appointment_id=str(appointment_id))

        self._notify(
            appointment.doctor_id,
            "Appointment canceled",
            f"The appointment on {appointment.appointment_date.isoformat()} at "
            f"{format_time(appointment.appointment_time)} was canceled.",
            "appointment_cancelled",
        )
        return appointment

    async def reschedule(
        self,
        appointment_id: UUID,
        user: dict,
        new_date: str | date,
        new_time: str | time,
    ) -> AppointmentResponse:
        """
        Move a booked appointment to another slot of the same doctor.

        Releasing the old slot and claiming the new one happen in one
        transaction with both rows locked (in id order); if the target cannot
        be claimed nothing changes.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user doesn't have access
            ValidationException: If the target is malformed, in the past or unchanged
            ConflictException: If the appointment is no longer booked
            SlotUnavailableException: If the target slot is missing or booked
        """
        target_date = parse_date(new_date)
        target_time = normalize_time(new_time)

        if target_date < self.clock.today():
            raise ValidationException("Cannot move an appointment into the past")

        log_context = {
            "appointment_id": str(appointment_id),
            "target_date": target_date.isoformat(),
            "target_time": format_time(target_time),
        }

        async with atomic(self.db, "reschedule", **log_context):
            row = await self._load(appointment_id, for_update=True)
            await self._check_access(row, user)

            if row["status"] != AppointmentStatus.BOOKED.value:
                raise ConflictException(f"Appointment is already {row['status']}")

            if row["appointment_date"] == target_date and row["appointment_time"] == target_time:
                raise ValidationException("Appointment is already scheduled at that time")

            target = await self.slots.get(row["doctor_id"], target_date, target_time)
            if target is None:
                raise SlotUnavailableException("The requested slot does not exist")

            locked = await self.slots.lock_many([row["slot_id"], target["id"]])
            if locked[target["id"]]["status"] != SlotStatus.AVAILABLE.value:
                logger.info("reschedule_slot_unavailable", **log_context)
                raise SlotUnavailableException("The requested slot is already booked")

            await self.slots.set_status(row["slot_id"], SlotStatus.AVAILABLE)
            await self.slots.set_status(target["id"], SlotStatus.BOOKED)

            result = await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(
                    slot_id=target["id"],
                    appointment_date=target_date,
                    appointment_time=target_time,
                    updated_at=datetime.now(UTC),
                )
                .returning(appointments)
            )
            updated = result.mappings().one()
            await self.db.commit()

        appointment = AppointmentResponse.model_validate(dict(updated))
        logger.info("appointment_rescheduled", **log_context)

        self._notify(
            appointment.doctor_id,
            "Appointment rescheduled",
            f"An appointment was moved from {row['appointment_date'].isoformat()} "
            f"{format_time(row['appointment_time'])} to {target_date.isoformat()} "
            f"{format_time(target_time)}.",
            "appointment_rescheduled",
        )
        return appointment

    async def complete(self, appointment_id: UUID, user: dict) -> AppointmentResponse:
        """
        Mark a booked appointment as completed. The slot stays booked.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the user is not the appointment's doctor
            ConflictException: If the appointment is no longer booked
        """
        if user["role"] not in ("doctor", "admin"):
            raise ForbiddenException("Only doctors can complete appointments")

        async with atomic(self.db, "complete", appointment_id=str(appointment_id)):
            row = await self._load(appointment_id, for_update=True)
            await self._check_access(row, user)

            if row["status"] != AppointmentStatus.BOOKED.value:
                raise ConflictException(f"Appointment is already {row['status']}")

            result = await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(
                    status=AppointmentStatus.COMPLETED.value,
                    updated_at=datetime.now(UTC),
                )
                .returning(appointments)
            )
            updated = result.mappings().one()
            await self.db.commit()

        logger.info("appointment_completed", appointment_id=str(appointment_id))
        return AppointmentResponse.model_validate(dict(updated))
