"""Slot schemas for availability responses."""

from datetime import date, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, field_serializer


class SlotStatus(str, Enum):
    """Slot status enumeration."""

    AVAILABLE = "available"
    BOOKED = "booked"


class SlotResponse(BaseModel):
    """Single slot row."""

    id: UUID
    doctor_id: UUID
    slot_date: date
    start_time: time
    end_time: time
    status: SlotStatus

    model_config = {"from_attributes": True}

    @field_serializer("start_time", "end_time")
    def serialize_time(self, value: time) -> str:
        """Serialize times in the canonical HH:MM:SS form."""
        return value.strftime("%H:%M:%S")


class AvailableSlotsResponse(BaseModel):
    """Free start times of one doctor on one date."""

    doctor_id: UUID
    date: date
    times: list[str]
