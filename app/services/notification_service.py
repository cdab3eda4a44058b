"""Notification sender for appointment notices.

Notices are fire-and-forget: every public method swallows and logs its own
failures so that callers never roll back or fail because of a notice.
"""

import asyncio
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from firebase_admin import messaging
from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.firebase import is_firebase_initialized
from app.database import AsyncSessionLocal
from app.models.doctors import doctors
from app.models.notifications import notifications
from app.models.push_tokens import push_tokens

logger = structlog.get_logger(__name__)


class NotificationService:
    """Service for recording and pushing notices to users."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        """Initialize service with the session factory notices are recorded through."""
        self.session_factory = session_factory
        self._pending: set[asyncio.Task] = set()

    async def notify(
        self,
        doctor_id: UUID,
        subject: str,
        body: str,
        notification_type: str = "other",
        data: dict[str, str] | None = None,
    ) -> None:
        """
        Send a notice to a doctor.

        Args:
            doctor_id: Doctor ID (not the doctor's user ID)
            subject: Notification title
            body: Notification body
            notification_type: Type recorded with the notice
            data: Optional data payload
        """
        try:
            async with self.session_factory() as db:
                result = await db.execute(select(doctors.c.user_id).where(doctors.c.id == doctor_id))
                user_id = result.scalar_one_or_none()
        except Exception as e:
            logger.error("notification_lookup_failed", doctor_id=str(doctor_id), error=str(e))
            return

        if user_id is None:
            logger.warning("notification_doctor_not_found", doctor_id=str(doctor_id))
            return

        await self.notify_user(user_id, subject, body, notification_type, data)

    async def notify_user(
        self,
        user_id: UUID,
        subject: str,
        body: str,
        notification_type: str = "other",
        data: dict[str, str] | None = None,
    ) -> None:
        """
        Record a notice for a user and push it to their active devices.

        Args:
            user_id: User ID
            subject: Notification title
            body: Notification body
            notification_type: Type recorded with the notice
            data: Optional data payload
        """
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    insert(notifications)
                    .values(
                        user_id=user_id,
                        title=subject,
                        body=body,
                        notification_type=notification_type,
                        data=data,
                        status="pending",
                    )
                    .returning(notifications.c.id)
                )
                notification_id = result.scalar_one()

                token_result = await db.execute(
                    select(push_tokens.c.fcm_token).where(
                        push_tokens.c.user_id == user_id,
                        push_tokens.c.is_active == True,  # noqa: E712
                    )
                )
                tokens = list(token_result.scalars().all())

                failure_reason = None
                if tokens and is_firebase_initialized():
                    success_count, failure_count = await self.send_push_notification(
                        tokens=tokens, title=subject, body=body, data=data
                    )
                    final_status = "sent" if success_count > 0 else "failed"
                    if failure_count and not success_count:
                        failure_reason = "Push delivery failed for all devices"
                else:
                    # Nothing to push to; the notice stays in the user's history
                    final_status = "recorded"

                await db.execute(
                    update(notifications)
                    .where(notifications.c.id == notification_id)
                    .values(
                        status=final_status,
                        sent_at=datetime.now(UTC),
                        failure_reason=failure_reason,
                    )
                )
                await db.commit()

            logger.info(
                "notification_sent",
                user_id=str(user_id),
                notification_type=notification_type,
                status=final_status,
            )
        except Exception as e:
            logger.error(
                "notification_failed",
                user_id=str(user_id),
                notification_type=notification_type,
                error=str(e),
            )

    def dispatch(
        self,
        doctor_id: UUID,
        subject: str,
        body: str,
        notification_type: str = "other",
        data: dict[str, str] | None = None,
    ) -> asyncio.Task:
        """
        Schedule ``notify`` on the running loop without waiting for it.

        The task is retained until it finishes so it is not garbage collected.
        """
        task = asyncio.create_task(
            self.notify(doctor_id, subject, body, notification_type, data),
            name=f"notify-doctor-{doctor_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for dispatched notices still in flight."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    @staticmethod
    async def send_push_notification(
        tokens: list[str],
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> tuple[int, int]:
        """
        Send push notification to multiple devices.

        Args:
            tokens: List of FCM tokens
            title: Notification title
            body: Notification body
            data: Optional data payload

        Returns:
            Tuple of (success_count, failure_count)
        """
        if not tokens:
            logger.warning("no_tokens_provided", title=title)
            return 0, 0

        try:
            message = messaging.MulticastMessage(
                notification=messaging.Notification(
                    title=title,
                    body=body,
                ),
                data={key: str(value) for key, value in (data or {}).items()},
                tokens=tokens,
                android=messaging.AndroidConfig(priority="high"),
            )

            response = await asyncio.to_thread(messaging.send_each_for_multicast, message)

            logger.info(
                "push_notification_sent",
                title=title,
                success_count=response.success_count,
                failure_count=response.failure_count,
            )

            return response.success_count, response.failure_count

        except Exception as e:
            logger.error("push_notification_failed", error=str(e), title=title)
            return 0, len(tokens)

    @staticmethod
    async def register_token(
        db: AsyncSession,
        user_id: UUID,
        fcm_token: str,
        platform: str,
    ) -> dict[str, Any]:
        """
        Register or reactivate an FCM token for a user.

        Args:
            db: Database session
            user_id: User ID
            fcm_token: FCM token
            platform: Platform (android, ios, web)

        Returns:
            Created/updated token record
        """
        stmt = (
            pg_insert(push_tokens)
            .values(user_id=user_id, fcm_token=fcm_token, platform=platform, is_active=True)
            .on_conflict_do_update(
                constraint="uq_push_tokens_user_token",
                set_={"is_active": True, "platform": platform},
            )
            .returning(push_tokens)
        )
        result = await db.execute(stmt)
        row = result.mappings().one()
        await db.commit()
        return dict(row)

    @staticmethod
    async def list_notifications(
        db: AsyncSession,
        user_id: UUID,
        limit: int = 50,
    ) -> tuple[int, list[dict[str, Any]]]:
        """
        Get a user's most recent notices.

        Returns:
            Tuple of (total count, newest-first rows)
        """
        count_result = await db.execute(
            select(func.count()).select_from(notifications).where(notifications.c.user_id == user_id)
        )
        total = count_result.scalar() or 0

        result = await db.execute(
            select(notifications)
            .where(notifications.c.user_id == user_id)
            .order_by(notifications.c.created_at.desc())
            .limit(limit)
        )
        return total, [dict(row) for row in result.mappings().all()]


notification_service = NotificationService()
