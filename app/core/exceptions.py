"""
Domain errors & their HTTP mapping.

Services raise these instead of HTTPException so the session state
machine stays independent of the web layer.  The handlers registered
here translate them:

- Every `UnauthorizedError` becomes the same bare 401.  The internal
  `reason` is logged, never returned, so callers cannot tell a wrong
  password from an unknown login or a stale token from a missing
  session.
- `ForbiddenError` / `NotFoundError` carry their message to the client.
- Anything unexpected becomes a generic 500.
"""

import enum
import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)


class UnauthorizedReason(str, enum.Enum):
    BAD_CREDENTIALS = "BAD_CREDENTIALS"
    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    NO_SESSION = "NO_SESSION"
    WRONG_USER = "WRONG_USER"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    STALE_TOKEN = "STALE_TOKEN"
    REUSE_DETECTED = "REUSE_DETECTED"


class DomainError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthorizedError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, reason: UnauthorizedReason, message: str = "Unauthorized"):
        super().__init__(message)
        self.reason = reason

    def __repr__(self) -> str:
        return f"<UnauthorizedError {self.reason.value}: {self.message}>"


class ReuseDetectedError(UnauthorizedError):
    """A stale refresh token was presented; the session is already terminated."""

    def __init__(self, message: str = "Refresh token reuse detected"):
        super().__init__(UnauthorizedReason.REUSE_DETECTED, message)


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        logger.warning(
            "401 on %s %s: %s (%s)",
            request.method,
            request.url.path,
            exc.reason.value,
            exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": "Unauthorized"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(DomainError)
    async def handle_domain_error(request: Request, exc: DomainError):
        logger.warning(
            "%d on %s %s: %s",
            exc.status_code,
            request.method,
            request.url.path,
            exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        body = {
            "detail": "Some error occurred",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if settings.SEND_INTERNAL_SERVER_ERROR_DETAILS:
            body["detail"] = str(exc) or exc.__class__.__name__
            body["path"] = request.url.path
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)
