"""Slot store access and slot generation."""

from datetime import UTC, date, datetime, time
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import TransientStorageException
from app.core.timeslots import format_time, slot_end_time
from app.models.slots import doctor_slots
from app.schemas.slots import SlotStatus

logger = structlog.get_logger(__name__)


class SlotStore:
    """Reads and writes ``doctor_slots`` rows inside the caller's transaction."""

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    async def get(self, doctor_id: UUID, slot_date: date, start_time: time) -> dict | None:
        """Get a slot without locking it."""
        result = await self.db.execute(
            select(doctor_slots).where(
                doctor_slots.c.doctor_id == doctor_id,
                doctor_slots.c.slot_date == slot_date,
                doctor_slots.c.start_time == start_time,
            )
        )
        row = result.mappings().first()
        return dict(row) if row else None

    async def get_for_update(
        self,
        doctor_id: UUID,
        slot_date: date,
        start_time: time,
    ) -> dict | None:
        """
        Get a slot and hold its row lock until the transaction ends.

        Concurrent callers on the same slot block here until the holder
        commits or rolls back, then observe the committed status.
        """
        result = await self.db.execute(
            select(doctor_slots)
            .where(
                doctor_slots.c.doctor_id == doctor_id,
                doctor_slots.c.slot_date == slot_date,
                doctor_slots.c.start_time == start_time,
            )
            .with_for_update()
        )
        row = result.mappings().first()
        return dict(row) if row else None

    async def lock_many(self, slot_ids: list[UUID]) -> dict[UUID, dict]:
        """Lock several slots in ascending id order and return them by id."""
        result = await self.db.execute(
            select(doctor_slots)
            .where(doctor_slots.c.id.in_(slot_ids))
            .order_by(doctor_slots.c.id)
            .with_for_update()
        )
        return {row["id"]: dict(row) for row in result.mappings().all()}

    async def set_status(self, slot_id: UUID, status: SlotStatus) -> None:
        """Change a slot's status."""
        await self.db.execute(
            update(doctor_slots)
            .where(doctor_slots.c.id == slot_id)
            .values(status=status.value, updated_at=datetime.now(UTC))
        )

    async def list_for_date(self, doctor_id: UUID, slot_date: date) -> list[dict]:
        """Get every slot of a doctor on a date ordered by start time."""
        result = await self.db.execute(
            select(doctor_slots)
            .where(
                doctor_slots.c.doctor_id == doctor_id,
                doctor_slots.c.slot_date == slot_date,
            )
            .order_by(doctor_slots.c.start_time)
        )
        return [dict(row) for row in result.mappings().all()]

    async def list_available_times(self, doctor_id: UUID, slot_date: date) -> list[str]:
        """Get the free start times of a doctor on a date as ``HH:MM:SS``."""
        result = await self.db.execute(
            select(doctor_slots.c.start_time)
            .where(
                doctor_slots.c.doctor_id == doctor_id,
                doctor_slots.c.slot_date == slot_date,
                doctor_slots.c.status == SlotStatus.AVAILABLE.value,
            )
            .order_by(doctor_slots.c.start_time)
        )
        return [format_time(value) for value in result.scalars().all()]


class SlotGenerator:
    """Materializes the canonical workday slots of a doctor for one date."""

    def __init__(
        self,
        db: AsyncSession,
        slot_times: list[time] | None = None,
        duration_minutes: int | None = None,
    ):
        """Initialize generator with database session and workday layout."""
        self.db = db
        self.slot_times = slot_times or settings.slot_start_times
        self.duration_minutes = duration_minutes or settings.slot_duration_minutes

    def is_canonical(self, start_time: time) -> bool:
        """Check whether a start time belongs to the workday layout."""
        return start_time in self.slot_times

    async def generate_for_date(
        self,
        doctor_id: UUID,
        slot_date: date,
        slot_times: list[time] | None = None,
    ) -> int:
        """
        Insert missing ``available`` slots for a doctor on a date.

        Each start time is inserted and committed on its own, skipping times
        that already have a row, so rerunning after a partial run only fills
        the gaps.

        Args:
            doctor_id: Doctor ID
            slot_date: Target date
            slot_times: Start times to create; defaults to the workday layout

        Returns:
            Number of rows inserted

        Raises:
            TransientStorageException: If an insert fails; remaining times
                for the date are skipped and earlier inserts are kept
        """
        inserted = 0

        for start_time in slot_times or self.slot_times:
            stmt = (
                pg_insert(doctor_slots)
                .values(
                    doctor_id=doctor_id,
                    slot_date=slot_date,
                    start_time=start_time,
                    end_time=slot_end_time(start_time, self.duration_minutes),
                    status=SlotStatus.AVAILABLE.value,
                )
                .on_conflict_do_nothing(index_elements=["doctor_id", "slot_date", "start_time"])
                .returning(doctor_slots.c.id)
            )

            try:
                result = await self.db.execute(stmt)
                created = result.first() is not None
                await self.db.commit()
            except DBAPIError as e:
                await self.db.rollback()
                logger.error(
                    "slot_generation_aborted",
                    doctor_id=str(doctor_id),
                    slot_date=slot_date.isoformat(),
                    start_time=format_time(start_time),
                    inserted=inserted,
                    error=str(e),
                )
                raise TransientStorageException("Slot generation failed, please retry") from e

            if created:
                inserted += 1

        if inserted:
            logger.info(
                "slots_generated",
                doctor_id=str(doctor_id),
                slot_date=slot_date.isoformat(),
                inserted=inserted,
            )

        return inserted
