"""Booking engine: reserves a slot and creates its appointment atomically."""

from datetime import date, time
from uuid import UUID

import structlog
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.clock import Clock, system_clock
from app.core.exceptions import SlotUnavailableException, ValidationException
from app.core.timeslots import check_advance_window, format_time, normalize_time, parse_date
from app.models.appointments import appointments
from app.schemas.appointments import AppointmentResponse, AppointmentStatus
from app.schemas.slots import SlotStatus
from app.services.directory_service import DirectoryService
from app.services.notification_service import NotificationService
from app.services.slot_service import SlotGenerator, SlotStore
from app.services.transactions import atomic

logger = structlog.get_logger(__name__)


class BookingService:
    """Service for booking appointment slots."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationService | None = None,
        clock: Clock = system_clock,
        directory: DirectoryService | None = None,
        generator: SlotGenerator | None = None,
    ):
        """Initialize service with database session and collaborators."""
        self.db = db
        self.notifier = notifier
        self.clock = clock
        self.directory = directory or DirectoryService()
        self.slots = SlotStore(db)
        self.generator = generator or SlotGenerator(db)

    async def book(
        self,
        doctor_identifier: str | UUID,
        appointment_date: str | date,
        appointment_time: str | time,
        patient_id: UUID,
        details: str | None = None,
    ) -> AppointmentResponse:
        """
        Reserve a slot and create its appointment.

        The slot row stays locked from the status check until commit, so of
        several concurrent calls for one slot exactly one succeeds and the
        rest see ``SlotUnavailableException``.

        Args:
            doctor_identifier: Doctor ID, doctor's user ID or doctor's email
            appointment_date: ``YYYY-MM-DD``
            appointment_time: ``H:MM AM/PM`` or ``HH:MM:SS``
            patient_id: Patient user ID
            details: Free text reason for the visit

        Returns:
            Created appointment

        Raises:
            NotFoundException: If the doctor is unknown
            ValidationException: If the date or time is malformed, in the past
                or beyond the advance booking window
            SlotUnavailableException: If the slot is booked or does not exist
            TransientStorageException: If storage fails; nothing is written
        """
        slot_date = parse_date(appointment_date)
        slot_time = normalize_time(appointment_time)

        today = self.clock.today()
        if slot_date < today:
            raise ValidationException("Cannot book an appointment in the past")
        check_advance_window(slot_date, today, settings.slot_max_advance_days)

        log_context = {
            "doctor": str(doctor_identifier),
            "slot_date": slot_date.isoformat(),
            "slot_time": format_time(slot_time),
        }

        async with atomic(self.db, "booking", **log_context):
            doctor = await self.directory.resolve_doctor(self.db, doctor_identifier)
            log_context["doctor_id"] = str(doctor.id)

            slot = await self.slots.get_for_update(doctor.id, slot_date, slot_time)

            if slot is None:
                if not self.generator.is_canonical(slot_time):
                    raise ValidationException(
                        f"{format_time(slot_time)} is not a bookable slot time"
                    )

                # Nothing is locked yet; end the transaction before generating
                await self.db.rollback()
                await self.generator.generate_for_date(doctor.id, slot_date)
                slot = await self.slots.get_for_update(doctor.id, slot_date, slot_time)

            if slot is None or slot["status"] != SlotStatus.AVAILABLE.value:
                logger.info("booking_slot_unavailable", **log_context)
                raise SlotUnavailableException("The requested slot is already booked")

            result = await self.db.execute(
                insert(appointments)
                .values(
                    doctor_id=doctor.id,
                    patient_id=patient_id,
                    slot_id=slot["id"],
                    appointment_date=slot_date,
                    appointment_time=slot_time,
                    details=details,
                    status=AppointmentStatus.BOOKED.value,
                    notified=False,
                )
                .returning(appointments)
            )
            row = result.mappings().one()
            await self.slots.set_status(slot["id"], SlotStatus.BOOKED)
            await self.db.commit()

        appointment = AppointmentResponse.model_validate(dict(row))
        logger.info("appointment_booked", appointment_id=str(appointment.id), **log_context)

        if self.notifier:
            self.notifier.dispatch(
                doctor.id,
                "New appointment booked",
                f"An appointment was booked on {slot_date.isoformat()} at {format_time(slot_time)}.",
                notification_type="appointment_booked",
                data={"appointment_id": str(appointment.id)},
            )

        return appointment
