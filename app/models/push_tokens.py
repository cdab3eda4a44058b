"""Device push tokens used to deliver notices to users."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

metadata = MetaData()

push_tokens = Table(
    "push_tokens",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    Column(
        "user_id",
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("fcm_token", Text, nullable=False),
    Column("platform", String(10), nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("registered_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    UniqueConstraint("user_id", "fcm_token", name="uq_push_tokens_user_token"),
    CheckConstraint(
        "platform IN ('android', 'ios', 'web')",
        name="push_tokens_platform_check",
    ),
)
