"""Tests for authentication endpoints."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from app.core.security import create_access_token
from tests.conftest import RecordingNotifier, headers_for


async def register(client: AsyncClient, email: str, role: str = "patient") -> dict:
    response = await client.post(
        "/api/v1/auth/register",
        json={"name": "Sam Sample", "email": email, "password": "password123", "role": role},
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_register_and_login(client: AsyncClient) -> None:
    user = await register(client, "sam@medibook.io")
    assert user["role"] == "patient"
    assert user["email"] == "sam@medibook.io"

    response = await client.post(
        "/api/v1/auth/login", json={"email": "Sam@MediBook.io", "password": "password123"}
    )
    assert response.status_code == 200
    token = response.json()["access_token"]
    assert response.json()["token_type"] == "bearer"

    # The token authenticates protected endpoints
    listed = await client.get(
        "/api/v1/appointments/", headers={"Authorization": f"Bearer {token}"}
    )
    assert listed.status_code == 200


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient) -> None:
    await register(client, "sam@medibook.io")
    response = await client.post(
        "/api/v1/auth/register",
        json={"name": "Sam Again", "email": "sam@medibook.io", "password": "password123"},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_register_rejects_short_password(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/auth/register",
        json={"name": "Sam", "email": "sam@medibook.io", "password": "short"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, patient: dict) -> None:
    response = await client.post(
        "/api/v1/auth/login", json={"email": patient["email"], "password": "wrong-password"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_register_doctor_profile(client: AsyncClient) -> None:
    await register(client, "newdoc@medibook.io", role="doctor")
    login = await client.post(
        "/api/v1/auth/login", json={"email": "newdoc@medibook.io", "password": "password123"}
    )
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    response = await client.post(
        "/api/v1/auth/register/doctor",
        json={"specialization": "Neurology", "clinic_address": "1 Main St"},
        headers=headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["specialization"] == "Neurology"
    assert data["email"] == "newdoc@medibook.io"

    again = await client.post(
        "/api/v1/auth/register/doctor", json={"specialization": "Neurology"}, headers=headers
    )
    assert again.status_code == 409

    found = await client.get("/api/v1/doctors/newdoc@medibook.io")
    assert found.status_code == 200


@pytest.mark.asyncio
async def test_patient_cannot_create_doctor_profile(client: AsyncClient, auth_headers: dict) -> None:
    response = await client.post(
        "/api/v1/auth/register/doctor", json={"specialization": "Neurology"}, headers=auth_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_password_reset_flow(
    client: AsyncClient,
    patient: dict,
    mock_redis: MagicMock,
    notifier: RecordingNotifier,
) -> None:
    response = await client.post("/api/v1/auth/otp", json={"email": patient["email"]})
    assert response.status_code == 200

    key, ttl, code = mock_redis.setex.call_args.args
    assert key == f"otp:{patient['email']}"
    assert ttl == 300
    assert notifier.user_notices[0]["type"] == "password_reset"
    assert code in notifier.user_notices[0]["body"]

    mock_redis.get.return_value = code
    response = await client.post(
        "/api/v1/auth/password/reset",
        json={"email": patient["email"], "otp": code, "new_password": "brand-new-pass"},
    )
    assert response.status_code == 200

    login = await client.post(
        "/api/v1/auth/login", json={"email": patient["email"], "password": "brand-new-pass"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_password_reset_with_wrong_code(
    client: AsyncClient,
    patient: dict,
    mock_redis: MagicMock,
) -> None:
    mock_redis.get.return_value = "111111"
    response = await client.post(
        "/api/v1/auth/password/reset",
        json={"email": patient["email"], "otp": "222222", "new_password": "brand-new-pass"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_otp_for_unknown_email_is_silent(
    client: AsyncClient,
    mock_redis: MagicMock,
    notifier: RecordingNotifier,
) -> None:
    response = await client.post("/api/v1/auth/otp", json={"email": "ghost@medibook.io"})
    assert response.status_code == 200
    mock_redis.setex.assert_not_called()
    assert notifier.user_notices == []


@pytest.mark.asyncio
async def test_expired_token_is_rejected(client: AsyncClient, patient: dict) -> None:
    token = create_access_token({"sub": str(patient["id"])}, expires_delta=timedelta(seconds=-5))
    response = await client.get(
        "/api/v1/appointments/", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Token has expired"

    response = await client.get("/api/v1/appointments/", headers=headers_for(patient))
    assert response.status_code == 200
