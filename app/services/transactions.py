"""Transaction scope shared by the booking and lifecycle services."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AppException,
    SlotUnavailableException,
    TransientStorageException,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession, operation: str, **log_context: str) -> AsyncGenerator[None, None]:
    """
    Roll back every write of the block when it raises.

    The block commits on its own. Errors leave nothing behind:

    - application errors are re-raised unchanged
    - unique index violations mean another transaction holds the slot and
      become ``SlotUnavailableException``
    - any other driver error (lock or statement timeout, lost connection)
      becomes ``TransientStorageException`` without exposing driver detail

    Args:
        db: Session whose transaction the block runs in
        operation: Event name prefix for log lines
        log_context: Extra fields for log lines
    """
    try:
        yield
    except AppException:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"{operation}_conflict", error=str(e.orig), **log_context)
        raise SlotUnavailableException() from e
    except DBAPIError as e:
        await db.rollback()
        logger.error(f"{operation}_storage_error", error=str(e.orig), **log_context)
        raise TransientStorageException() from e
