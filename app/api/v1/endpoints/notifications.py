"""Notification endpoints."""

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentUser, DatabaseSession
from app.schemas.notifications import (
    NotificationHistoryItem,
    NotificationHistoryResponse,
    PushTokenRegister,
    PushTokenResponse,
)
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post(
    "/push-tokens",
    response_model=PushTokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register FCM token",
)
async def register_push_token(
    token_data: PushTokenRegister,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> PushTokenResponse:
    """
    Register or reactivate an FCM token for the authenticated user.

    Doctors should register a token to receive booking, cancellation,
    rescheduling and reminder notices on their devices.

    Args:
        token_data: FCM token and platform information
        current_user: Authenticated user
        db: Database session

    Returns:
        Registered token details
    """
    token = await NotificationService.register_token(
        db=db,
        user_id=current_user["id"],
        fcm_token=token_data.fcm_token,
        platform=token_data.platform,
    )
    return PushTokenResponse.model_validate(token)


@router.get(
    "",
    response_model=NotificationHistoryResponse,
    status_code=status.HTTP_200_OK,
    summary="List my notifications",
)
async def list_notifications(
    current_user: CurrentUser,
    db: DatabaseSession,
    limit: int = Query(50, ge=1, le=200),
) -> NotificationHistoryResponse:
    """
    Get the authenticated user's most recent notices, newest first.

    Args:
        current_user: Authenticated user
        db: Database session
        limit: Maximum number of notices

    Returns:
        Notification history
    """
    total, rows = await NotificationService.list_notifications(db, current_user["id"], limit)
    return NotificationHistoryResponse(
        total=total,
        items=[NotificationHistoryItem.model_validate(row) for row in rows],
    )
