"""Tests for doctor directory endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.users import users
from tests.conftest import create_doctor


@pytest.mark.asyncio
async def test_search_doctors(client: AsyncClient, db_session: AsyncSession, doctor: dict) -> None:
    await create_doctor(
        db_session, "derm@medibook.io", full_name="Dr. Skin", specialization="Dermatology"
    )

    response = await client.get("/api/v1/doctors/")
    assert response.status_code == 200
    assert response.json()["total"] == 2

    response = await client.get("/api/v1/doctors/", params={"specialization": "cardio"})
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["email"] == "doctor@medibook.io"


@pytest.mark.asyncio
async def test_get_doctor_by_any_identifier(client: AsyncClient, doctor: dict) -> None:
    for identifier in (str(doctor["id"]), str(doctor["user_id"]), "DOCTOR@medibook.io"):
        response = await client.get(f"/api/v1/doctors/{identifier}")
        assert response.status_code == 200
        assert response.json()["id"] == str(doctor["id"])


@pytest.mark.asyncio
async def test_get_unknown_doctor(client: AsyncClient, db_session: AsyncSession) -> None:
    response = await client.get("/api/v1/doctors/nobody@medibook.io")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_inactive_doctor_is_hidden(
    client: AsyncClient, db_session: AsyncSession, doctor: dict
) -> None:
    await db_session.execute(
        update(users).where(users.c.id == doctor["user_id"]).values(is_active=False)
    )
    await db_session.commit()

    for identifier in (str(doctor["id"]), doctor["email"]):
        response = await client.get(f"/api/v1/doctors/{identifier}")
        assert response.status_code == 404

    response = await client.get("/api/v1/doctors/")
    assert response.json()["total"] == 0
