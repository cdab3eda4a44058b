"""Doctor slot table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    MetaData,
    Table,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

metadata = MetaData()

# One row per bookable (doctor, date, start time). Rows are never deleted.
doctor_slots = Table(
    "doctor_slots",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    Column(
        "doctor_id",
        UUID(as_uuid=True),
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("slot_date", Date, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("status", Text, nullable=False, server_default="available"),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    # Constraints
    UniqueConstraint("doctor_id", "slot_date", "start_time", name="uq_doctor_slots_doctor_date_time"),
    CheckConstraint(
        "status IN ('available', 'booked')",
        name="doctor_slots_status_check",
    ),
    CheckConstraint("end_time > start_time", name="doctor_slots_time_order_check"),
    Index("idx_doctor_slots_doctor_date_status", "doctor_id", "slot_date", "status"),
)
