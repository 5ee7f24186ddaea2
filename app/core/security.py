"""
Password hashing & JWT helpers.

- Passwords are hashed with bcrypt directly (passlib is unmaintained
  and broken with bcrypt>=4.1).
- Access and refresh tokens are signed by two separate, immutable
  `TokenSigner` instances with their own secrets and lifetimes.  They
  are built once from settings and injected, never read from module
  globals at call time.
- Signing returns the issued-at claim alongside the token.  A refresh
  token's `iat` is the version marker stored on its device session, so
  the caller must get the exact value the signer assigned without
  decoding the token again.
"""

import functools
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from app.core.config import settings
from app.core.durations import parse_duration

# ── Password hashing ────────────────────────────────────────────────


# bcrypt only reads the first 72 bytes; bcrypt>=5 raises instead of truncating.
BCRYPT_MAX_BYTES = 72


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(_password_bytes(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))


# Built at import so the first unknown-login check costs one bcrypt round like every other.
_DUMMY_PASSWORD_HASH = hash_password(uuid.uuid4().hex)


def dummy_password_hash() -> str:
    """Hash compared against when the login is unknown, to keep timing flat."""
    return _DUMMY_PASSWORD_HASH


# ── Token errors ────────────────────────────────────────────────────


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpired(TokenError):
    pass


class BadSignature(TokenError):
    """Signature mismatch, malformed token, or claims of the wrong shape."""


# ── Signing ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class IssuedToken:
    token: str
    iat: int
    exp: int

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)


@dataclass(frozen=True)
class TokenSigner:
    secret: str
    ttl: timedelta
    algorithm: str = "HS256"

    def sign(self, claims: dict[str, Any], *, not_before: int | None = None) -> IssuedToken:
        """Sign *claims*, stamping ``iat`` (whole seconds) and ``exp``.

        ``not_before`` is a floor for ``iat``: rotation passes the
        previous value + 1 so successive tokens for one device never
        share an issued-at second.
        """
        iat = int(datetime.now(timezone.utc).timestamp())
        if not_before is not None and iat < not_before:
            iat = not_before
        exp = iat + int(self.ttl.total_seconds())

        to_encode = {**claims, "iat": iat, "exp": exp}
        token = jwt.encode(to_encode, self.secret, algorithm=self.algorithm)
        return IssuedToken(token=token, iat=iat, exp=exp)

    def verify(self, token: str) -> dict[str, Any]:
        """Check signature & expiry.  Raises TokenExpired / BadSignature."""
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired(str(exc)) from exc
        except JWTError as exc:
            raise BadSignature(str(exc)) from exc


# ── Claims ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AccessTokenClaims:
    user_id: uuid.UUID
    iat: int
    exp: int


@dataclass(frozen=True)
class RefreshTokenClaims:
    user_id: uuid.UUID
    device_id: str
    iat: int
    exp: int


def _parse_user_id(payload: dict[str, Any]) -> uuid.UUID:
    sub = payload.get("sub")
    try:
        return uuid.UUID(str(sub))
    except ValueError as exc:
        raise BadSignature("Invalid sub claim") from exc


def _int_claim(payload: dict[str, Any], name: str) -> int:
    value = payload.get(name)
    if not isinstance(value, int) or isinstance(value, bool):
        raise BadSignature(f"Missing or non-integer {name} claim")
    return value


# ── Issuer ──────────────────────────────────────────────────────────


class TokenIssuer:
    """Issues and verifies the access / refresh token pair."""

    def __init__(self, access_signer: TokenSigner, refresh_signer: TokenSigner):
        self._access = access_signer
        self._refresh = refresh_signer

    @property
    def refresh_ttl(self) -> timedelta:
        return self._refresh.ttl

    def issue_access_token(self, user_id: uuid.UUID) -> str:
        return self._access.sign({"sub": str(user_id)}).token

    def issue_refresh_token(
        self,
        user_id: uuid.UUID,
        device_id: str,
        *,
        not_before: int | None = None,
    ) -> IssuedToken:
        return self._refresh.sign(
            {"sub": str(user_id), "deviceId": device_id},
            not_before=not_before,
        )

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        payload = self._access.verify(token)
        return AccessTokenClaims(
            user_id=_parse_user_id(payload),
            iat=_int_claim(payload, "iat"),
            exp=_int_claim(payload, "exp"),
        )

    def verify_refresh_token(self, token: str) -> RefreshTokenClaims:
        payload = self._refresh.verify(token)
        device_id = payload.get("deviceId")
        if not isinstance(device_id, str) or not device_id:
            raise BadSignature("Missing deviceId claim")
        return RefreshTokenClaims(
            user_id=_parse_user_id(payload),
            device_id=device_id,
            iat=_int_claim(payload, "iat"),
            exp=_int_claim(payload, "exp"),
        )


@functools.lru_cache(maxsize=1)
def get_token_issuer() -> TokenIssuer:
    """FastAPI dependency: the process-wide issuer built from settings."""
    return TokenIssuer(
        access_signer=TokenSigner(
            secret=settings.ACCESS_TOKEN_SECRET,
            ttl=parse_duration(settings.ACCESS_TOKEN_EXPIRE_IN),
            algorithm=settings.JWT_ALGORITHM,
        ),
        refresh_signer=TokenSigner(
            secret=settings.REFRESH_TOKEN_SECRET,
            ttl=parse_duration(settings.REFRESH_TOKEN_EXPIRE_IN),
            algorithm=settings.JWT_ALGORITHM,
        ),
    )
