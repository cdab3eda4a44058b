"""Notification model for tracking notices sent to users."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

metadata = MetaData()

notifications = Table(
    "notifications",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    Column(
        "user_id", UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    ),
    Column("title", Text, nullable=False),
    Column("body", Text, nullable=False),
    Column("notification_type", String(50), nullable=False),
    Column("data", JSONB, nullable=True),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("sent_at", TIMESTAMP(timezone=True), nullable=True),
    Column("failure_reason", Text, nullable=True),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        "notification_type IN ('appointment_booked', 'appointment_cancelled', "
        "'appointment_rescheduled', 'appointment_reminder', 'password_reset', 'other')",
        name="notifications_type_check",
    ),
    CheckConstraint(
        "status IN ('pending', 'sent', 'recorded', 'failed')",
        name="notifications_status_check",
    ),
    Index("idx_notifications_user_id", "user_id"),
    Index("idx_notifications_created_at", "created_at", postgresql_ops={"created_at": "DESC"}),
)
