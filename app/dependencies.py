"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

import redis
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.redis_client import CacheManager, OtpStore, get_redis_client
from app.core.security import TokenStatus, verify_access_token
from app.database import get_db
from app.services.auth_service import AuthService
from app.services.directory_service import DirectoryService
from app.services.notification_service import NotificationService, notification_service

# Security
security = HTTPBearer()


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        User ID from token

    Raises:
        HTTPException: If token is invalid or expired
    """
    verification = verify_access_token(credentials.credentials)

    if verification.status is TokenStatus.EXPIRED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not verification.is_valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return UUID(verification.payload["sub"])
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Get current user from database.

    Args:
        user_id: User ID from JWT token
        db: Database session

    Returns:
        User data from database

    Raises:
        HTTPException: If user not found or inactive
    """
    user = await AuthService.get_user_by_id(db, user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


def get_notification_service() -> NotificationService:
    """Get the process-wide notice sender."""
    return notification_service


def get_clock() -> Clock:
    """Get the wall clock used for date checks."""
    return system_clock


def get_cache_manager(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> CacheManager:
    """Get cache manager instance."""
    return CacheManager(redis_client)


def get_otp_store(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> OtpStore:
    """Get the Redis-backed OTP store."""
    return OtpStore(redis_client)


def get_directory_service(
    cache_manager: Annotated[CacheManager, Depends(get_cache_manager)],
) -> DirectoryService:
    """Get directory service instance."""
    return DirectoryService(cache_manager=cache_manager)


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
Notifier = Annotated[NotificationService, Depends(get_notification_service)]
SystemClock = Annotated[Clock, Depends(get_clock)]
Directory = Annotated[DirectoryService, Depends(get_directory_service)]
Otp = Annotated[OtpStore, Depends(get_otp_store)]
