"""Tests for the background slot scheduler."""

import asyncio
from datetime import date, datetime, time, timedelta

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import TransientStorageException
from app.models.appointments import appointments
from app.models.slots import doctor_slots
from app.models.users import users
from app.services.appointment_service import AppointmentService
from app.services.booking_service import BookingService
from app.services.slot_service import SlotGenerator
from app.workers import slot_scheduler
from app.workers.slot_scheduler import SlotScheduler
from tests.conftest import TODAY, FixedClock, RecordingNotifier, create_doctor


async def count_slots(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(doctor_slots))).scalar()


def make_scheduler(session_factory, clock, notifier=None, **kwargs) -> SlotScheduler:
    return SlotScheduler(
        session_factory=session_factory,
        notifier=notifier or RecordingNotifier(),
        clock=clock,
        horizon_days=7,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_generate_horizon_then_rerun(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    clock: FixedClock,
    doctor: dict,
) -> None:
    """Eight slots a day over seven days, and nothing new on a second run."""
    scheduler = make_scheduler(session_factory, clock)

    assert await scheduler.generate_horizon() == 56
    assert await count_slots(db_session) == 56
    assert scheduler.last_generation_at == clock.now()

    assert await scheduler.generate_horizon() == 0
    assert await count_slots(db_session) == 56

    last_day = (
        await db_session.execute(select(func.max(doctor_slots.c.slot_date)))
    ).scalar()
    assert last_day == TODAY + timedelta(days=6)


@pytest.mark.asyncio
async def test_generate_horizon_covers_every_active_doctor(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    clock: FixedClock,
    doctor: dict,
) -> None:
    second = await create_doctor(db_session, "second@medibook.io", full_name="Dr. Grace Hopper")
    retired = await create_doctor(db_session, "retired@medibook.io", full_name="Dr. Retired")
    await db_session.execute(
        update(users).where(users.c.id == retired["user_id"]).values(is_active=False)
    )
    await db_session.commit()

    assert await make_scheduler(session_factory, clock).generate_horizon() == 112

    per_doctor = dict(
        (
            await db_session.execute(
                select(doctor_slots.c.doctor_id, func.count()).group_by(doctor_slots.c.doctor_id)
            )
        ).all()
    )
    assert per_doctor == {doctor["id"]: 56, second["id"]: 56}


@pytest.mark.asyncio
async def test_generate_horizon_skips_failing_date(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    clock: FixedClock,
    doctor: dict,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A failing date is logged and skipped; the next run fills it in."""
    broken_day = TODAY + timedelta(days=2)

    class FlakyGenerator(SlotGenerator):
        async def generate_for_date(self, doctor_id, slot_date: date, slot_times=None) -> int:
            if slot_date == broken_day:
                raise TransientStorageException("Slot generation failed, please retry")
            return await super().generate_for_date(doctor_id, slot_date, slot_times)

    monkeypatch.setattr(slot_scheduler, "SlotGenerator", FlakyGenerator)
    scheduler = make_scheduler(session_factory, clock)

    assert await scheduler.generate_horizon() == 48

    monkeypatch.setattr(slot_scheduler, "SlotGenerator", SlotGenerator)
    assert await scheduler.generate_horizon() == 8
    assert await count_slots(db_session) == 56


@pytest.mark.asyncio
async def test_reminders_are_sent_once(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    clock: FixedClock,
    patient: dict,
    doctor: dict,
) -> None:
    booking = BookingService(db_session, clock=clock)
    today_visit = await booking.book(doctor["email"], TODAY, "09:00 AM", patient["id"])
    canceled = await booking.book(doctor["email"], TODAY, "10:00 AM", patient["id"])
    await booking.book(doctor["email"], TODAY + timedelta(days=1), "09:00 AM", patient["id"])
    await AppointmentService(db_session, clock=clock).cancel(canceled.id, patient)

    notifier = RecordingNotifier()
    scheduler = make_scheduler(session_factory, clock, notifier)

    assert await scheduler.send_reminders() == 1
    assert len(notifier.notified) == 1
    assert notifier.notified[0]["doctor_id"] == doctor["id"]
    assert notifier.notified[0]["type"] == "appointment_reminder"
    assert notifier.notified[0]["data"] == {"appointment_id": str(today_visit.id)}

    flagged = (
        await db_session.execute(
            select(appointments.c.notified).where(appointments.c.id == today_visit.id)
        )
    ).scalar()
    assert flagged is True

    assert await scheduler.send_reminders() == 0
    assert len(notifier.notified) == 1


@pytest.mark.asyncio
async def test_failed_reminder_is_retried(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    clock: FixedClock,
    patient: dict,
    doctor: dict,
) -> None:
    await BookingService(db_session, clock=clock).book(
        doctor["email"], TODAY, "09:00 AM", patient["id"]
    )

    class BrokenNotifier(RecordingNotifier):
        async def notify(self, *args, **kwargs):
            raise RuntimeError("push backend down")

    assert await make_scheduler(session_factory, clock, BrokenNotifier()).send_reminders() == 0

    notifier = RecordingNotifier()
    assert await make_scheduler(session_factory, clock, notifier).send_reminders() == 1
    assert len(notifier.notified) == 1


def test_seconds_until_reminder(session_factory) -> None:
    before = FixedClock(datetime(2024, 6, 1, 6, 0))
    after = FixedClock(datetime(2024, 6, 1, 9, 0))

    scheduler = make_scheduler(session_factory, before, reminder_time=time(8, 0))
    assert scheduler.seconds_until_reminder() == 2 * 3600

    scheduler = make_scheduler(session_factory, after, reminder_time=time(8, 0))
    assert scheduler.seconds_until_reminder() == 23 * 3600


@pytest.mark.asyncio
async def test_start_and_stop(session_factory, clock: FixedClock, monkeypatch) -> None:
    runs = []

    async def fake_generate(self):
        runs.append("generate")
        return 0

    monkeypatch.setattr(SlotScheduler, "generate_horizon", fake_generate)
    scheduler = make_scheduler(session_factory, clock, reminder_time=time(8, 0))

    scheduler.start()
    scheduler.start()
    assert len(scheduler._tasks) == 2
    assert scheduler.running

    # Let the generation loop run its first pass
    for _ in range(3):
        await asyncio.sleep(0)

    await scheduler.stop()
    assert scheduler._tasks == []
    assert not scheduler.running
    assert runs == ["generate"]
