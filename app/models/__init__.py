"""
Models package — import every model so SQLAlchemy's Base.metadata
knows about all tables (critical for Alembic autogenerate and for the
test suite's `create_all`).
"""

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from app.models.device_session import (
    ActiveSession,
    DeletedSession,
    DeviceSession,
    SessionState,
)
from app.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "User",
    "DeviceSession",
    "SessionState",
    "ActiveSession",
    "DeletedSession",
]
