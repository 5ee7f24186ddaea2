"""
Session service — persistence for device sessions.

Handles:
- Creating and upserting device sessions
- Looking up the live (non-deleted) session for a device id
- Compare-and-swap rotation of `last_active_date` / `expiration_date`
- Soft-deleting one session or every other session of a user

Everything here flushes but never commits; the request dependency owns
the transaction.
"""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.device_session import DeviceSession


async def create_session(
    *,
    user_id: uuid.UUID,
    device_id: str,
    ip: str,
    title: str,
    expiration_date: datetime,
    last_active_date: int,
    db: AsyncSession,
) -> DeviceSession:
    session = DeviceSession(
        id=uuid.uuid4(),
        user_id=user_id,
        device_id=device_id,
        ip=ip,
        title=title,
        expiration_date=expiration_date,
        last_active_date=last_active_date,
    )
    db.add(session)
    await db.flush()
    return session


async def get_session_by_device_id(
    device_id: str,
    db: AsyncSession,
) -> DeviceSession | None:
    """Return the live session for a device, ignoring soft-deleted rows.

    Always re-reads the row: the conditional UPDATEs below bypass the
    identity map, so a cached instance could carry an old version.
    """
    stmt = (
        select(DeviceSession)
        .where(
            DeviceSession.device_id == device_id,
            DeviceSession.deleted_at.is_(None),
        )
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def save_session(session: DeviceSession, db: AsyncSession) -> None:
    """Insert or update a session already built in memory."""
    db.add(session)
    await db.flush()


async def atomic_rotate(
    device_id: str,
    expected_last_active_date: int,
    new_last_active_date: int,
    new_expiration_date: datetime,
    db: AsyncSession,
) -> bool:
    """
    Move a session to a new version in a single conditional UPDATE.

    Returns False when no live row still carries
    `expected_last_active_date`, i.e. another request rotated (or
    deleted) the session first.  On PostgreSQL the second writer blocks
    on the row lock and re-evaluates the WHERE clause after the first
    commits, so exactly one of two racing callers gets True.
    """
    stmt = (
        update(DeviceSession)
        .where(
            DeviceSession.device_id == device_id,
            DeviceSession.last_active_date == expected_last_active_date,
            DeviceSession.deleted_at.is_(None),
        )
        .values(
            last_active_date=new_last_active_date,
            expiration_date=new_expiration_date,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount == 1


async def soft_delete(device_id: str, db: AsyncSession) -> bool:
    """Mark the live session for a device as deleted.  False if none was live."""
    stmt = (
        update(DeviceSession)
        .where(
            DeviceSession.device_id == device_id,
            DeviceSession.deleted_at.is_(None),
        )
        .values(deleted_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount > 0


async def soft_delete_all_except(
    user_id: uuid.UUID,
    keep_device_id: str,
    db: AsyncSession,
) -> int:
    """
    Delete every live session of a user except `keep_device_id`.

    Returns the number of sessions affected.
    """
    stmt = (
        update(DeviceSession)
        .where(
            DeviceSession.user_id == user_id,
            DeviceSession.device_id != keep_device_id,
            DeviceSession.deleted_at.is_(None),
        )
        .values(deleted_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount


async def list_active_sessions(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> list[DeviceSession]:
    """Live, unexpired sessions for a user, most recently active first."""
    stmt = (
        select(DeviceSession)
        .where(
            DeviceSession.user_id == user_id,
            DeviceSession.deleted_at.is_(None),
            DeviceSession.expiration_date >= utcnow().replace(microsecond=0),
        )
        .order_by(DeviceSession.last_active_date.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
