"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    BOOKED = "booked"
    COMPLETED = "completed"
    CANCELED = "canceled"


class BookingRequest(BaseModel):
    """Schema for booking a slot."""

    doctor_identifier: str = Field(
        ...,
        min_length=1,
        max_length=320,
        description="Doctor ID, the doctor's user ID, or the doctor's email",
    )
    date: str = Field(..., description="Appointment date as YYYY-MM-DD")
    time: str = Field(..., description="'H:MM AM/PM' or 'HH:MM:SS'")
    patient_identifier: str | None = Field(
        None,
        description="Patient user ID; defaults to the authenticated patient",
    )
    details: str | None = Field(None, max_length=1000)


class RescheduleRequest(BaseModel):
    """Schema for moving an appointment to another slot."""

    new_date: str = Field(..., description="Target date as YYYY-MM-DD")
    new_time: str = Field(..., description="'H:MM AM/PM' or 'HH:MM:SS'")


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    doctor_id: UUID
    patient_id: UUID
    slot_id: UUID
    appointment_date: date
    appointment_time: time
    details: str | None = None
    status: AppointmentStatus
    notified: bool
    created_at: datetime
    updated_at: datetime
    canceled_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_serializer("appointment_time")
    def serialize_time(self, value: time) -> str:
        """Serialize times in the canonical HH:MM:SS form."""
        return value.strftime("%H:%M:%S")


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
