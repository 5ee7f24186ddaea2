"""
Device session model — one row per logged-in browser / device.

- `device_id` is an opaque UUID string handed out at login and carried
  in every refresh token.  At most one non-deleted row may hold it
  (partial unique index).
- `last_active_date` is the `iat` (unix seconds) of the newest refresh
  token issued for the device.  It doubles as the version number for
  rotation: a token whose `iat` differs is stale.
- `expiration_date` slides forward on every successful refresh.
- `deleted_at` is the soft-delete marker.  Business code reads it
  through `state`, which returns an explicit Active / Deleted value.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, as_utc


@dataclass(frozen=True)
class ActiveSession:
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        # whole seconds, like the token iat / exp claims
        return int(self.expires_at.timestamp()) < int(now.timestamp())


@dataclass(frozen=True)
class DeletedSession:
    deleted_at: datetime


SessionState = ActiveSession | DeletedSession


class DeviceSession(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "device_sessions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    device_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ip: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    last_active_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expiration_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_device_sessions_device_id_live",
            "device_id",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("ix_device_sessions_user_deleted", "user_id", "deleted_at"),
    )

    @property
    def state(self) -> SessionState:
        if self.deleted_at is not None:
            return DeletedSession(deleted_at=as_utc(self.deleted_at))
        return ActiveSession(expires_at=as_utc(self.expiration_date))

    def __repr__(self) -> str:
        return (
            f"<DeviceSession user={self.user_id} device={self.device_id} "
            f"last_active={self.last_active_date}>"
        )
