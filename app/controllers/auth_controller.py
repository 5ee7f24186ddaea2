"""
Auth controller — login, refresh-token rotation, logout & current user.

The access token travels in the response body; the refresh token only
ever travels in an HTTP-only cookie.  Login is PUBLIC; refresh and
logout require the refresh cookie; /me requires a Bearer access token.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import UnauthorizedError, UnauthorizedReason
from app.core.guards import require_access_token, require_refresh_token
from app.core.security import (
    AccessTokenClaims,
    RefreshTokenClaims,
    TokenIssuer,
    get_token_issuer,
)
from app.core.user_agent import parse_device_title
from app.schemas import AccessTokenResponse, LoginRequest, MeOut
from app.services import auth_service, user_service

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _set_refresh_cookie(response: Response, token: str, issuer: TokenIssuer) -> None:
    max_age = settings.COOKIE_MAX_AGE_SECONDS
    if max_age is None:
        max_age = int(issuer.refresh_ttl.total_seconds())
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        max_age=max_age,
        path=settings.COOKIE_PATH,
        domain=settings.COOKIE_DOMAIN,
        secure=settings.COOKIE_SECURE,
        httponly=settings.COOKIE_HTTP_ONLY,
        samesite=settings.COOKIE_SAME_SITE,
    )


def _clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path=settings.COOKIE_PATH,
        domain=settings.COOKIE_DOMAIN,
        secure=settings.COOKIE_SECURE,
        httponly=settings.COOKIE_HTTP_ONLY,
        samesite=settings.COOKIE_SAME_SITE,
    )


@router.post("/login", response_model=AccessTokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Authenticate with login-or-email + password → access token + refresh cookie."""
    user_id = await auth_service.validate_credentials(body.login_or_email, body.password, db)
    tokens = await auth_service.login(
        user_id,
        ip=_client_ip(request),
        device_title=parse_device_title(request.headers.get("user-agent")),
        db=db,
        issuer=issuer,
    )
    _set_refresh_cookie(response, tokens.refresh_token, issuer)
    return AccessTokenResponse(access_token=tokens.access_token)


@router.post("/refresh-token", response_model=AccessTokenResponse)
async def refresh_token(
    response: Response,
    claims: RefreshTokenClaims = Depends(require_refresh_token),
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Exchange the refresh cookie for a new access token + rotated cookie."""
    tokens = await auth_service.refresh(
        claims.user_id, claims.device_id, claims.iat, db, issuer,
    )
    _set_refresh_cookie(response, tokens.refresh_token, issuer)
    return AccessTokenResponse(access_token=tokens.access_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    claims: RefreshTokenClaims = Depends(require_refresh_token),
    db: AsyncSession = Depends(get_db),
):
    """End the current device session and clear the refresh cookie."""
    await auth_service.logout(claims.user_id, claims.device_id, claims.iat, db)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    _clear_refresh_cookie(response)
    return response


@router.get("/me", response_model=MeOut)
async def me(
    claims: AccessTokenClaims = Depends(require_access_token),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user_by_id(claims.user_id, db)
    if user is None:
        raise UnauthorizedError(UnauthorizedReason.NO_SESSION, "User no longer exists")
    return MeOut(user_id=user.id, login=user.login, email=user.email)
