"""Tests for the device-session store."""

import uuid
from datetime import datetime, timedelta, timezone

from app.models.base import utcnow
from app.models.device_session import ActiveSession, DeletedSession
from app.services import session_service


async def _make(db, user_id, device_id=None, *, last_active=1_000, expires_in=timedelta(hours=1)):
    session = await session_service.create_session(
        user_id=user_id,
        device_id=device_id or str(uuid.uuid4()),
        ip="10.0.0.1",
        title="Chrome 120",
        expiration_date=utcnow() + expires_in,
        last_active_date=last_active,
        db=db,
    )
    await db.commit()
    return session


async def test_create_then_get_by_device_id(db, user):
    created = await _make(db, user.id, "device-1")

    found = await session_service.get_session_by_device_id("device-1", db)

    assert found is not None
    assert found.id == created.id
    assert found.user_id == user.id
    assert found.ip == "10.0.0.1"
    assert found.title == "Chrome 120"
    assert found.last_active_date == 1_000
    assert isinstance(found.state, ActiveSession)


async def test_unknown_device_is_none(db):
    assert await session_service.get_session_by_device_id("missing", db) is None


async def test_atomic_rotate_succeeds_once_per_version(db, user):
    await _make(db, user.id, "device-1", last_active=1_000)
    new_exp = utcnow() + timedelta(hours=2)

    first = await session_service.atomic_rotate("device-1", 1_000, 1_001, new_exp, db)
    second = await session_service.atomic_rotate("device-1", 1_000, 1_002, new_exp, db)
    await db.commit()

    assert first is True
    assert second is False
    found = await session_service.get_session_by_device_id("device-1", db)
    assert found.last_active_date == 1_001


async def test_atomic_rotate_ignores_deleted_session(db, user):
    await _make(db, user.id, "device-1", last_active=1_000)
    await session_service.soft_delete("device-1", db)

    rotated = await session_service.atomic_rotate(
        "device-1", 1_000, 1_001, utcnow() + timedelta(hours=1), db,
    )

    assert rotated is False


async def test_soft_delete_hides_session(db, user, fetch_session):
    await _make(db, user.id, "device-1")

    assert await session_service.soft_delete("device-1", db) is True
    await db.commit()

    assert await session_service.get_session_by_device_id("device-1", db) is None
    row = await fetch_session("device-1")
    assert row.deleted_at is not None
    assert isinstance(row.state, DeletedSession)


async def test_soft_delete_twice_reports_nothing_deleted(db, user):
    await _make(db, user.id, "device-1")

    assert await session_service.soft_delete("device-1", db) is True
    assert await session_service.soft_delete("device-1", db) is False


async def test_soft_delete_all_except_keeps_current_and_other_users(db, user, other_user):
    await _make(db, user.id, "a")
    await _make(db, user.id, "b")
    await _make(db, user.id, "c")
    await _make(db, other_user.id, "d")

    count = await session_service.soft_delete_all_except(user.id, "a", db)
    await db.commit()

    assert count == 2
    assert await session_service.get_session_by_device_id("a", db) is not None
    assert await session_service.get_session_by_device_id("b", db) is None
    assert await session_service.get_session_by_device_id("c", db) is None
    assert await session_service.get_session_by_device_id("d", db) is not None


async def test_list_active_sessions_orders_by_last_active_and_filters(db, user, other_user):
    await _make(db, user.id, "old", last_active=1_000)
    await _make(db, user.id, "new", last_active=3_000)
    await _make(db, user.id, "mid", last_active=2_000)
    await _make(db, user.id, "expired", last_active=4_000, expires_in=timedelta(seconds=-5))
    await _make(db, user.id, "gone", last_active=5_000)
    await _make(db, other_user.id, "foreign", last_active=6_000)
    await session_service.soft_delete("gone", db)
    await db.commit()

    sessions = await session_service.list_active_sessions(user.id, db)

    assert [s.device_id for s in sessions] == ["new", "mid", "old"]


async def test_expired_session_state_reports_expiry(db, user):
    session = await _make(db, user.id, "device-1", expires_in=timedelta(seconds=-1))

    state = session.state

    assert isinstance(state, ActiveSession)
    assert state.is_expired(utcnow())


def test_expiry_is_compared_in_whole_seconds():
    expires_at = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    state = ActiveSession(expires_at=expires_at)

    assert not state.is_expired(expires_at + timedelta(milliseconds=500))
    assert state.is_expired(expires_at + timedelta(seconds=1))

