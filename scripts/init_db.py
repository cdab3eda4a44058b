"""Script to initialize the database and seed the slot horizon."""

import asyncio

from sqlalchemy import text

from app.database import engine
from app.models import build_metadata
from app.workers.slot_scheduler import SlotScheduler


async def init_db() -> None:
    """Create all tables, then generate slots for every registered doctor."""
    async with engine.begin() as conn:
        # Enable pgcrypto extension
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        # Create all tables
        await conn.run_sync(build_metadata().create_all)

    print("✓ Database initialized successfully!")

    created = await SlotScheduler().generate_horizon()
    print(f"✓ Generated {created} slots")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
