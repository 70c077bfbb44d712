from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, overload

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.exception.exceptions import UniqueViolationError


@overload
def as_utc(value: datetime) -> datetime: ...


@overload
def as_utc(value: None) -> None: ...


def as_utc(value: datetime | None) -> datetime | None:
    """Drivers without timezone support (sqlite) hand back naive UTC datetimes"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UNIQUE_VIOLATION_SQLSTATE = '23505'


def is_unique_violation(error: IntegrityError) -> bool:
    """asyncpg reports a SQLSTATE; sqlite only says so in the message"""
    sqlstate = getattr(error.orig, 'sqlstate', None) or getattr(error.orig, 'pgcode', None)
    if sqlstate:
        return sqlstate == UNIQUE_VIOLATION_SQLSTATE
    text = str(error.orig).lower()
    return 'unique constraint' in text or 'duplicate key' in text


@asynccontextmanager
async def unique_violation_guard(message: str) -> AsyncIterator[None]:
    """
    Translate a unique-constraint IntegrityError into the domain-neutral
    UniqueViolationError. Other integrity errors (foreign keys, NOT NULL) propagate.

    The session is unusable afterwards; the caller's unit of work must be discarded.
    """
    try:
        yield
    except IntegrityError as e:
        if not is_unique_violation(e):
            raise
        raise UniqueViolationError(message) from e


async def flush_new(session: AsyncSession, model: object, *, conflict_message: str) -> None:
    session.add(model)
    async with unique_violation_guard(conflict_message):
        await session.flush()
