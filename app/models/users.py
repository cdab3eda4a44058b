"""User model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    # Login identity
    Column("email", Text, nullable=False, unique=True, index=True),
    Column("password_hash", Text, nullable=False),
    # Profile info
    Column("full_name", Text, nullable=False),
    Column("phone_number", String(20)),
    Column("role", Text, nullable=False, server_default=text("'patient'")),
    # Account state
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("last_login_at", DateTime(timezone=True)),
    CheckConstraint("role IN ('patient', 'doctor', 'admin')", name="users_role_check"),
)
