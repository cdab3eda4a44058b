"""Tests for storage error mapping and the JSON error payloads."""

import json
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError
from starlette.requests import Request

from app.core.exceptions import (
    NotFoundException,
    SlotUnavailableException,
    TransientStorageException,
)
from app.middleware.error_handler import app_exception_handler, general_exception_handler
from app.services.transactions import atomic


def make_request(path: str = "/api/v1/appointments/book") -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "scheme": "http",
            "server": ("test", 80),
            "root_path": "",
            "path": path,
            "query_string": b"",
            "headers": [],
        }
    )


@pytest.mark.asyncio
async def test_atomic_maps_unique_violation_to_slot_unavailable() -> None:
    db = AsyncMock()

    with pytest.raises(SlotUnavailableException):
        async with atomic(db, "booking", slot_time="09:00:00"):
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_atomic_maps_driver_errors_to_transient() -> None:
    db = AsyncMock()

    with pytest.raises(TransientStorageException) as excinfo:
        async with atomic(db, "booking"):
            raise DBAPIError("SELECT", {}, Exception("canceling statement due to lock timeout"))

    assert "lock timeout" not in excinfo.value.message
    db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_atomic_reraises_application_errors() -> None:
    db = AsyncMock()

    with pytest.raises(NotFoundException):
        async with atomic(db, "cancel"):
            raise NotFoundException("Appointment not found")

    db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_atomic_leaves_successful_blocks_alone() -> None:
    db = AsyncMock()

    async with atomic(db, "booking"):
        pass

    db.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_transient_error_response_has_retry_hint() -> None:
    response = await app_exception_handler(make_request(), TransientStorageException())

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    body = json.loads(response.body)
    assert body["error"] == "TransientStorageException"
    assert body["path"] == "http://test/api/v1/appointments/book"


@pytest.mark.asyncio
async def test_slot_conflict_response() -> None:
    response = await app_exception_handler(make_request(), SlotUnavailableException())

    assert response.status_code == 409
    assert "Retry-After" not in response.headers
    assert json.loads(response.body)["message"] == "Slot is not available"


@pytest.mark.asyncio
async def test_unexpected_error_hides_detail() -> None:
    response = await general_exception_handler(make_request(), RuntimeError("password=hunter2"))

    assert response.status_code == 500
    assert "hunter2" not in response.body.decode()
