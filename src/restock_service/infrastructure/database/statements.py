"""Statement helpers shared by the stores."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy import or_, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restock_service.exceptions import StorageError

logger = structlog.get_logger()


def upsert_insert(session: AsyncSession, model: Any):
    """Return an INSERT supporting ON CONFLICT for the session's dialect.

    PostgreSQL in production; SQLite is accepted so the stores can run
    against an in-memory database.
    """
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)


@asynccontextmanager
async def storage_errors(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    """Re-raise SQLAlchemy failures as StorageError, rolling the session back first."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Storage operation failed", operation=operation, error=str(e))
        await session.rollback()
        raise StorageError(f"{operation} failed: {e.__class__.__name__}") from e


async def claim_row(
    session: AsyncSession,
    model: Any,
    row_id: int,
    ttl: timedelta,
    now: datetime,
    *conditions: Any,
) -> str | None:
    """
    Compare-and-set a dispatch claim on ``model`` row ``row_id``.

    Succeeds when the row is unclaimed or its claim is older than ``ttl``,
    and every extra condition still holds. The claim is committed before
    returning so racing processes see it.
    """
    token = str(uuid4())
    stmt = (
        update(model)
        .where(
            model.id == row_id,
            or_(model.dispatch_token.is_(None), model.dispatch_claimed_at < now - ttl),
            *conditions,
        )
        .values(dispatch_token=token, dispatch_claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    async with storage_errors(session, f"claim_{model.__tablename__}"):
        result = await session.execute(stmt)
        await session.commit()
    return token if result.rowcount == 1 else None


async def release_row(session: AsyncSession, model: Any, row_id: int, token: str) -> None:
    stmt = (
        update(model)
        .where(model.id == row_id, model.dispatch_token == token)
        .values(dispatch_token=None, dispatch_claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    async with storage_errors(session, f"release_{model.__tablename__}"):
        await session.execute(stmt)
        await session.commit()
