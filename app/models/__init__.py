"""Database models."""

from sqlalchemy import MetaData

from app.models.appointments import appointments
from app.models.appointments import metadata as appointments_metadata
from app.models.doctors import doctors
from app.models.doctors import metadata as doctors_metadata
from app.models.notifications import metadata as notifications_metadata
from app.models.notifications import notifications
from app.models.push_tokens import metadata as push_tokens_metadata
from app.models.push_tokens import push_tokens
from app.models.slots import doctor_slots
from app.models.slots import metadata as slots_metadata
from app.models.users import metadata as users_metadata
from app.models.users import users


def build_metadata() -> MetaData:
    """Combine every table module into one MetaData for create_all/drop_all."""
    combined = MetaData()
    # Parents first so foreign keys resolve
    for source in (
        users_metadata,
        doctors_metadata,
        slots_metadata,
        appointments_metadata,
        push_tokens_metadata,
        notifications_metadata,
    ):
        for table in source.tables.values():
            table.to_metadata(combined)
    return combined


__all__ = [
    "appointments",
    "build_metadata",
    "doctor_slots",
    "doctors",
    "notifications",
    "push_tokens",
    "users",
]
