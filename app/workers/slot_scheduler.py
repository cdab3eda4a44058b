"""Background scheduler keeping slots generated and sending daily reminders.

Runs inside the API process, started from the application lifespan:

- slot generation for every doctor across the forward horizon, at startup
  and then every ``SLOT_GENERATION_INTERVAL_HOURS``
- reminders for today's booked appointments at ``REMINDER_TIME`` each day

Both jobs are best effort: a failing doctor, date or appointment is logged
and skipped, and the next run picks up whatever is still missing.
"""

import asyncio
from datetime import UTC, datetime, time, timedelta

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.core.clock import Clock, system_clock
from app.core.timeslots import format_time, horizon_dates
from app.database import AsyncSessionLocal
from app.models.appointments import appointments
from app.schemas.appointments import AppointmentStatus
from app.services.directory_service import DirectoryService
from app.services.notification_service import NotificationService, notification_service
from app.services.slot_service import SlotGenerator

logger = structlog.get_logger(__name__)


class SlotScheduler:
    """Periodic slot generation and reminder jobs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        notifier: NotificationService = notification_service,
        clock: Clock = system_clock,
        horizon_days: int | None = None,
        interval_hours: int | None = None,
        reminder_time: time | None = None,
        slot_times: list[time] | None = None,
    ):
        """Initialize scheduler; unset options fall back to settings."""
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock
        self.horizon_days = horizon_days or settings.slot_horizon_days
        self.interval_hours = interval_hours or settings.slot_generation_interval_hours
        self.reminder_time = reminder_time or settings.reminder_time
        self.slot_times = slot_times
        self.last_generation_at: datetime | None = None
        self.last_reminder_at: datetime | None = None
        self._tasks: list[asyncio.Task] = []

    async def generate_horizon(self) -> int:
        """
        Generate slots for every doctor over the horizon, today inclusive.

        Returns:
            Number of slot rows inserted
        """
        today = self.clock.today()
        dates = horizon_dates(today, self.horizon_days)

        async with self.session_factory() as db:
            doctor_ids = await DirectoryService.list_doctor_ids(db)

        inserted = 0
        failures = 0

        for doctor_id in doctor_ids:
            async with self.session_factory() as db:
                generator = SlotGenerator(db, slot_times=self.slot_times)
                for slot_date in dates:
                    try:
                        inserted += await generator.generate_for_date(doctor_id, slot_date)
                    except Exception as e:
                        failures += 1
                        logger.error(
                            "slot_generation_failed",
                            doctor_id=str(doctor_id),
                            slot_date=slot_date.isoformat(),
                            error=str(e),
                        )

        logger.info(
            "slot_horizon_generated",
            start=today.isoformat(),
            days=self.horizon_days,
            doctors=len(doctor_ids),
            inserted=inserted,
            failures=failures,
        )
        self.last_generation_at = self.clock.now()
        return inserted

    async def send_reminders(self) -> int:
        """
        Notify doctors about today's booked appointments not yet reminded.

        Each appointment is flagged ``notified`` after its notice, so later
        runs skip it.

        Returns:
            Number of appointments flagged
        """
        today = self.clock.today()
        sent = 0

        async with self.session_factory() as db:
            result = await db.execute(
                select(appointments)
                .where(
                    appointments.c.status == AppointmentStatus.BOOKED.value,
                    appointments.c.appointment_date == today,
                    appointments.c.notified == False,  # noqa: E712
                )
                .order_by(appointments.c.appointment_time)
            )
            due = [dict(row) for row in result.mappings().all()]
            await db.commit()

            for appointment in due:
                try:
                    await self.notifier.notify(
                        appointment["doctor_id"],
                        "Appointment reminder",
                        f"You have an appointment today at "
                        f"{format_time(appointment['appointment_time'])}.",
                        notification_type="appointment_reminder",
                        data={"appointment_id": str(appointment["id"])},
                    )

                    flagged = await db.execute(
                        update(appointments)
                        .where(
                            appointments.c.id == appointment["id"],
                            appointments.c.notified == False,  # noqa: E712
                        )
                        .values(notified=True, updated_at=datetime.now(UTC))
                    )
                    await db.commit()
                    sent += flagged.rowcount
                except Exception as e:
                    await db.rollback()
                    logger.error(
                        "reminder_failed",
                        appointment_id=str(appointment["id"]),
                        error=str(e),
                    )

        logger.info("reminders_sent", date=today.isoformat(), due=len(due), sent=sent)
        self.last_reminder_at = self.clock.now()
        return sent

    def seconds_until_reminder(self) -> float:
        """Seconds from now to the next reminder wall-clock time."""
        now = self.clock.now()
        target = datetime.combine(now.date(), self.reminder_time)
        if target <= now:
            target += timedelta(days=1)
        return (target - now).total_seconds()

    async def _generation_loop(self) -> None:
        interval = self.interval_hours * 3600
        while True:
            try:
                await self.generate_horizon()
            except Exception as e:
                logger.error("slot_generation_run_failed", error=str(e))
            await asyncio.sleep(interval)

    async def _reminder_loop(self) -> None:
        while True:
            await asyncio.sleep(self.seconds_until_reminder())
            try:
                await self.send_reminders()
            except Exception as e:
                logger.error("reminder_run_failed", error=str(e))

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Launch both jobs as background tasks on the running loop."""
        if self._tasks:
            return

        self._tasks = [
            asyncio.create_task(self._generation_loop(), name="slot-generation"),
            asyncio.create_task(self._reminder_loop(), name="appointment-reminders"),
        ]
        logger.info(
            "scheduler_started",
            horizon_days=self.horizon_days,
            interval_hours=self.interval_hours,
            reminder_time=self.reminder_time.isoformat(),
        )

    async def stop(self) -> None:
        """Cancel both jobs and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("scheduler_stopped")
