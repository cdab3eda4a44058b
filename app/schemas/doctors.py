"""Doctor schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class DoctorRegister(BaseModel):
    """Schema for attaching a doctor profile to the authenticated user."""

    specialization: str = Field(..., min_length=1, max_length=200)
    contact_number: str | None = Field(None, max_length=20)
    clinic_address: str | None = None


class DoctorResponse(BaseModel):
    """Doctor response schema."""

    id: UUID
    user_id: UUID
    full_name: str
    email: str
    specialization: str
    contact_number: str | None = None
    clinic_address: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class DoctorListResponse(BaseModel):
    """Paginated doctor search results."""

    total: int
    page: int
    page_size: int
    items: list[DoctorResponse]
