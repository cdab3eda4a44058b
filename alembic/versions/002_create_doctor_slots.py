"""Create doctor_slots table.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 00:10:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "doctor_slots",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("doctor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("status", sa.Text(), server_default="available", nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.CheckConstraint("status IN ('available', 'booked')", name="doctor_slots_status_check"),
        sa.CheckConstraint("end_time > start_time", name="doctor_slots_time_order_check"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "doctor_id", "slot_date", "start_time", name="uq_doctor_slots_doctor_date_time"
        ),
    )
    op.create_index(
        "idx_doctor_slots_doctor_date_status",
        "doctor_slots",
        ["doctor_id", "slot_date", "status"],
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_doctor_slots_doctor_date_status", table_name="doctor_slots")
    op.drop_table("doctor_slots")
