"""
Authentication service — credentials and the device-session lifecycle.

Handles:
- Credential validation (login or email + password)
- Login: new device session + access / refresh token pair
- Refresh-token rotation with reuse detection
- Logout and explicit session termination

State machine per device session:

    Active --refresh--> Active
    Active --logout / terminate / reuse detected--> Deleted (terminal)

"Expired" is an Active session whose expiration_date has passed; it is
checked on every read and never written.

Rotation rules:
- The session's `last_active_date` equals the `iat` of the one refresh
  token currently valid for the device.  Any other `iat` is stale.
- Presenting a stale token to `refresh` ends the whole session.
- Rotation is a compare-and-swap on (device_id, last_active_date).  If
  the swap matches nothing, a concurrent refresh already consumed the
  token and the call is treated exactly like reuse.  It is never
  retried.

All business logic lives here — controllers call service functions
and return the result.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.durations import expiration_from_now
from app.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    ReuseDetectedError,
    UnauthorizedError,
    UnauthorizedReason,
)
from app.core.security import TokenIssuer, dummy_password_hash, verify_password
from app.models.base import utcnow
from app.models.device_session import DeletedSession, DeviceSession
from app.services import session_service, user_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


# ── Helpers ──────────────────────────────────────────────────────────

async def _load_live_session(
    user_id: uuid.UUID,
    device_id: str,
    db: AsyncSession,
    now: datetime,
) -> DeviceSession:
    """Existence, ownership and expiry checks shared by every token-bound call."""
    session = await session_service.get_session_by_device_id(device_id, db)
    if session is None:
        raise UnauthorizedError(UnauthorizedReason.NO_SESSION, "Invalid session")

    state = session.state
    if isinstance(state, DeletedSession):
        raise UnauthorizedError(UnauthorizedReason.NO_SESSION, "Session terminated")

    if session.user_id != user_id:
        raise UnauthorizedError(
            UnauthorizedReason.WRONG_USER, "Session does not belong to user",
        )

    if state.is_expired(now):
        raise UnauthorizedError(UnauthorizedReason.SESSION_EXPIRED, "Session expired")

    return session


async def _terminate_on_reuse(
    user_id: uuid.UUID,
    device_id: str,
    db: AsyncSession,
) -> None:
    """Soft-delete the session, commit, and raise ReuseDetectedError."""
    await session_service.soft_delete(device_id, db)
    # Commit now: the request transaction is rolled back when we raise.
    await db.commit()
    logger.warning(
        "Refresh token reuse detected for user %s device %s; session terminated",
        user_id,
        device_id,
    )
    raise ReuseDetectedError("Token reuse detected - session terminated")


# ── Credentials ──────────────────────────────────────────────────────

async def validate_credentials(
    login_or_email: str,
    password: str,
    db: AsyncSession,
) -> uuid.UUID:
    """
    Return the user id for a login/email + password pair.

    Unknown account and wrong password raise the same error, and an
    unknown account still costs one bcrypt comparison.
    """
    user = await user_service.find_by_login_or_email(login_or_email, db)
    password_hash = user.password_hash if user is not None else dummy_password_hash()
    password_ok = verify_password(password, password_hash)

    if user is None or not password_ok:
        raise UnauthorizedError(
            UnauthorizedReason.BAD_CREDENTIALS, "Invalid login or password",
        )
    return user.id


# ── Login ────────────────────────────────────────────────────────────

async def login(
    user_id: uuid.UUID,
    ip: str,
    device_title: str,
    db: AsyncSession,
    issuer: TokenIssuer,
) -> TokenPair:
    """Open a new device session and issue its first token pair."""
    device_id = str(uuid.uuid4())
    now = utcnow()
    expiration_date = expiration_from_now(issuer.refresh_ttl, now)

    session = await session_service.create_session(
        user_id=user_id,
        device_id=device_id,
        ip=ip,
        title=device_title,
        expiration_date=expiration_date,
        last_active_date=int(now.timestamp()),  # replaced by the signed iat below
        db=db,
    )

    access_token = issuer.issue_access_token(user_id)
    refresh = issuer.issue_refresh_token(user_id, device_id)

    session.last_active_date = refresh.iat
    await session_service.save_session(session, db)

    logger.info("User %s logged in on device %s (%s)", user_id, device_id, device_title)
    return TokenPair(access_token=access_token, refresh_token=refresh.token)


# ── Refresh ──────────────────────────────────────────────────────────

async def refresh(
    user_id: uuid.UUID,
    device_id: str,
    presented_iat: int,
    db: AsyncSession,
    issuer: TokenIssuer,
) -> TokenPair:
    """
    Consume the current refresh token and issue the next pair.

    `presented_iat` has already passed signature / expiry verification.
    """
    session = await _load_live_session(user_id, device_id, db, utcnow())

    if session.last_active_date != presented_iat:
        await _terminate_on_reuse(user_id, device_id, db)

    access_token = issuer.issue_access_token(user_id)
    new_refresh = issuer.issue_refresh_token(
        user_id, device_id, not_before=presented_iat + 1,
    )

    rotated = await session_service.atomic_rotate(
        device_id,
        expected_last_active_date=presented_iat,
        new_last_active_date=new_refresh.iat,
        new_expiration_date=new_refresh.expires_at,
        db=db,
    )
    if not rotated:
        await _terminate_on_reuse(user_id, device_id, db)

    return TokenPair(access_token=access_token, refresh_token=new_refresh.token)


# ── Current-session checks ───────────────────────────────────────────

async def authenticate_session(
    user_id: uuid.UUID,
    device_id: str,
    presented_iat: int,
    db: AsyncSession,
) -> DeviceSession:
    """
    Prove the caller holds the current token of a live session.

    Same checks as `refresh` without rotation; a stale token is simply
    rejected and the session is left untouched.
    """
    session = await _load_live_session(user_id, device_id, db, utcnow())
    if session.last_active_date != presented_iat:
        raise UnauthorizedError(UnauthorizedReason.STALE_TOKEN, "Outdated refresh token")
    return session


# ── Logout / termination ─────────────────────────────────────────────

async def logout(
    user_id: uuid.UUID,
    device_id: str,
    presented_iat: int,
    db: AsyncSession,
) -> None:
    await authenticate_session(user_id, device_id, presented_iat, db)
    await session_service.soft_delete(device_id, db)
    logger.info("User %s logged out of device %s", user_id, device_id)


async def terminate_device_session(
    acting_user_id: uuid.UUID,
    target_device_id: str,
    db: AsyncSession,
) -> None:
    """
    Delete another of the caller's sessions.

    Refusing to terminate the caller's own current device is left to the
    HTTP layer, which is the only place that knows the current device.
    """
    target = await session_service.get_session_by_device_id(target_device_id, db)
    if target is None:
        raise NotFoundError("Device session not found")

    if target.user_id != acting_user_id:
        raise ForbiddenError("Cannot terminate device session of another user")

    await session_service.soft_delete(target_device_id, db)
    logger.info("User %s terminated device %s", acting_user_id, target_device_id)


async def terminate_all_other_sessions(
    user_id: uuid.UUID,
    current_device_id: str,
    current_iat: int,
    db: AsyncSession,
) -> int:
    """Delete every other live session of the user.  Returns how many."""
    await authenticate_session(user_id, current_device_id, current_iat, db)
    count = await session_service.soft_delete_all_except(user_id, current_device_id, db)
    logger.info(
        "User %s terminated %d other session(s), keeping device %s",
        user_id,
        count,
        current_device_id,
    )
    return count
