"""Tests for notice delivery and the notification endpoints."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.notifications import notifications
from app.services import notification_service as notification_module
from app.services.notification_service import NotificationService


async def recorded(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(notifications).order_by(notifications.c.created_at))
    return [dict(row) for row in result.mappings().all()]


@pytest.mark.asyncio
async def test_notify_records_notice_without_push(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    doctor: dict,
) -> None:
    """Without Firebase the notice is kept in the doctor's history."""
    service = NotificationService(session_factory=session_factory)

    await service.notify(
        doctor["id"], "New appointment booked", "Body", notification_type="appointment_booked"
    )

    rows = await recorded(db_session)
    assert len(rows) == 1
    assert rows[0]["user_id"] == doctor["user_id"]
    assert rows[0]["status"] == "recorded"
    assert rows[0]["notification_type"] == "appointment_booked"


@pytest.mark.asyncio
async def test_notify_pushes_to_registered_devices(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    doctor: dict,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    await NotificationService.register_token(db_session, doctor["user_id"], "token-1", "android")
    push = AsyncMock(return_value=(1, 0))
    monkeypatch.setattr(notification_module, "is_firebase_initialized", lambda: True)
    monkeypatch.setattr(NotificationService, "send_push_notification", push)

    await NotificationService(session_factory=session_factory).notify(
        doctor["id"], "Appointment reminder", "Body", notification_type="appointment_reminder"
    )

    push.assert_awaited_once()
    assert push.await_args.kwargs["tokens"] == ["token-1"]
    assert (await recorded(db_session))[0]["status"] == "sent"


@pytest.mark.asyncio
async def test_notify_never_raises(
    session_factory: async_sessionmaker[AsyncSession],
    db_session: AsyncSession,
) -> None:
    """Unknown doctors and storage failures are logged, not raised."""
    service = NotificationService(session_factory=session_factory)
    await service.notify(uuid4(), "Subject", "Body")

    # Unknown user violates the foreign key; the failure is swallowed
    await service.notify_user(uuid4(), "Subject", "Body")

    assert await recorded(db_session) == []


@pytest.mark.asyncio
async def test_dispatch_and_drain(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    doctor: dict,
) -> None:
    service = NotificationService(session_factory=session_factory)

    service.dispatch(doctor["id"], "Appointment canceled", "Body", "appointment_cancelled")
    await service.drain()

    assert [row["notification_type"] for row in await recorded(db_session)] == [
        "appointment_cancelled"
    ]


@pytest.mark.asyncio
async def test_push_token_and_history_endpoints(
    client: AsyncClient,
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    doctor: dict,
    doctor_headers: dict,
) -> None:
    response = await client.post(
        "/api/v1/notifications/push-tokens",
        json={"fcm_token": "token-1", "platform": "ios"},
        headers=doctor_headers,
    )
    assert response.status_code == 201
    assert response.json()["platform"] == "ios"

    # Registering the same token again reactivates it instead of duplicating
    again = await client.post(
        "/api/v1/notifications/push-tokens",
        json={"fcm_token": "token-1", "platform": "web"},
        headers=doctor_headers,
    )
    assert again.status_code == 201
    assert again.json()["id"] == response.json()["id"]

    await NotificationService(session_factory=session_factory).notify(
        doctor["id"], "Appointment reminder", "Body", notification_type="appointment_reminder"
    )

    history = await client.get("/api/v1/notifications", headers=doctor_headers)
    assert history.status_code == 200
    assert history.json()["total"] == 1
    assert history.json()["items"][0]["title"] == "Appointment reminder"


@pytest.mark.asyncio
async def test_push_token_rejects_unknown_platform(
    client: AsyncClient, doctor_headers: dict
) -> None:
    response = await client.post(
        "/api/v1/notifications/push-tokens",
        json={"fcm_token": "token-1", "platform": "blackberry"},
        headers=doctor_headers,
    )
    assert response.status_code == 400
