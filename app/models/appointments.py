"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    MetaData,
    Table,
    Text,
    Time,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

# Metadata for all tables
metadata = MetaData()

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    # Ownership / references
    Column(
        "patient_id",
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "doctor_id",
        UUID(as_uuid=True),
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "slot_id",
        UUID(as_uuid=True),
        ForeignKey("doctor_slots.id", ondelete="RESTRICT"),
        nullable=False,
    ),
    # Snapshot of the slot's date/time (kept in sync on reschedule)
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", Time, nullable=False),
    Column("details", Text, nullable=True),
    # Status management
    Column(
        "status",
        Text,
        nullable=False,
        server_default="booked",
    ),
    Column("notified", Boolean, nullable=False, server_default=text("false")),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("canceled_at", TIMESTAMP(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('booked', 'completed', 'canceled')",
        name="appointments_status_check",
    ),
    # At most one live appointment per slot
    Index(
        "uq_appointments_active_slot",
        "slot_id",
        unique=True,
        postgresql_where=text("status <> 'canceled'"),
    ),
    Index("idx_appointments_patient_id", "patient_id"),
    Index("idx_appointments_doctor_date", "doctor_id", "appointment_date"),
    Index(
        "idx_appointments_reminder_due",
        "appointment_date",
        postgresql_where=text("status = 'booked' AND notified = false"),
    ),
)
