"""Push notification schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class PushTokenRegister(BaseModel):
    """Schema for registering FCM token."""

    fcm_token: str = Field(..., description="Firebase Cloud Messaging token")
    platform: str = Field(
        ...,
        description="Platform type",
        pattern="^(android|ios|web)$",
    )


class PushTokenResponse(BaseModel):
    """Schema for push token response."""

    id: UUID
    user_id: UUID
    fcm_token: str
    platform: str
    is_active: bool
    registered_at: datetime

    model_config = {"from_attributes": True}


class NotificationHistoryItem(BaseModel):
    """Schema for a recorded notice."""

    id: UUID
    title: str
    body: str
    notification_type: str
    data: dict[str, Any] | None = None
    status: str
    sent_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationHistoryResponse(BaseModel):
    """Schema for paginated notification history."""

    total: int
    items: list[NotificationHistoryItem]
