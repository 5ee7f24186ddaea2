"""
User service — read helpers over the credential store.

The session subsystem never edits users; `create_user` exists for the
bootstrap script and tests.
"""

import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import hash_password
from app.models.user import User


async def find_by_login_or_email(
    login_or_email: str,
    db: AsyncSession,
) -> User | None:
    """Match on login first, then on email."""
    stmt = select(User).where(
        or_(User.login == login_or_email, User.email == login_or_email)
    )
    result = await db.execute(stmt)
    candidates = list(result.scalars().all())
    for user in candidates:
        if user.login == login_or_email:
            return user
    return candidates[0] if candidates else None


async def get_user_by_id(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_user(
    login: str,
    email: str,
    password: str,
    db: AsyncSession,
) -> User:
    user = User(
        id=uuid.uuid4(),
        login=login,
        email=email,
        password_hash=hash_password(password),
    )
    db.add(user)
    await db.flush()
    return user
