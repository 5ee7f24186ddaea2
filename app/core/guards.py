"""
Request guards — FastAPI dependencies wired explicitly per route.

- `require_refresh_token`: reads the refresh cookie and verifies its
  signature & expiry with the refresh key.  It deliberately does NOT
  check the device session: `auth_service.refresh` must see stale
  tokens so it can terminate the session on reuse.
- `require_current_session`: refresh claims + proof that they belong
  to the current token of a live session.  Used by the device
  management routes.
- `require_access_token`: Bearer access token -> claims.

Every failure is an UnauthorizedError and therefore the same bare 401.
"""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import UnauthorizedError, UnauthorizedReason
from app.core.security import (
    AccessTokenClaims,
    RefreshTokenClaims,
    TokenExpired,
    TokenError,
    TokenIssuer,
    get_token_issuer,
)
from app.services import auth_service

bearer_scheme = HTTPBearer(auto_error=False)


def _verify(verify, raw_token: str):
    try:
        return verify(raw_token)
    except TokenExpired as exc:
        raise UnauthorizedError(UnauthorizedReason.TOKEN_EXPIRED, str(exc)) from exc
    except TokenError as exc:
        raise UnauthorizedError(UnauthorizedReason.INVALID_TOKEN, str(exc)) from exc


async def require_refresh_token(
    request: Request,
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> RefreshTokenClaims:
    raw_token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not raw_token:
        raise UnauthorizedError(UnauthorizedReason.MISSING_TOKEN, "No refresh token cookie")
    return _verify(issuer.verify_refresh_token, raw_token)


async def require_current_session(
    claims: RefreshTokenClaims = Depends(require_refresh_token),
    db: AsyncSession = Depends(get_db),
) -> RefreshTokenClaims:
    await auth_service.authenticate_session(claims.user_id, claims.device_id, claims.iat, db)
    return claims


async def require_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AccessTokenClaims:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError(UnauthorizedReason.MISSING_TOKEN, "No bearer token")
    return _verify(issuer.verify_access_token, credentials.credentials)

