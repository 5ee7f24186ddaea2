"""
Pydantic schemas for request / response serialization.

The public API speaks camelCase (`loginOrEmail`, `accessToken`,
`lastActiveDate`); fields stay snake_case in Python through an alias
generator.  Schemas are deliberately decoupled from SQLAlchemy models
so the API surface can evolve independently of the DB layer.
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.device_session import DeviceSession


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Auth ─────────────────────────────────────────────────────────────
class LoginRequest(CamelModel):
    login_or_email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AccessTokenResponse(CamelModel):
    access_token: str


class MeOut(CamelModel):
    user_id: uuid.UUID
    login: str
    email: str


# ── Security devices ─────────────────────────────────────────────────
class DeviceOut(CamelModel):
    ip: str
    title: str
    last_active_date: datetime
    device_id: str

    @classmethod
    def from_session(cls, session: DeviceSession) -> "DeviceOut":
        return cls(
            ip=session.ip,
            title=session.title,
            last_active_date=datetime.fromtimestamp(session.last_active_date, tz=timezone.utc),
            device_id=session.device_id,
        )
