"""
Security devices controller — list and terminate the caller's sessions.

Every route requires a refresh cookie that is the *current* token of a
live session.  Controllers are THIN — they delegate to services and
return schemas.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import ForbiddenError
from app.core.guards import require_current_session
from app.core.security import RefreshTokenClaims
from app.schemas import DeviceOut
from app.services import auth_service, session_service

router = APIRouter(prefix="/api/security/devices", tags=["SecurityDevices"])


@router.get("", response_model=list[DeviceOut])
async def list_devices(
    claims: RefreshTokenClaims = Depends(require_current_session),
    db: AsyncSession = Depends(get_db),
):
    """All live sessions of the current user, most recently active first."""
    sessions = await session_service.list_active_sessions(claims.user_id, db)
    return [DeviceOut.from_session(s) for s in sessions]


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def terminate_all_other_sessions(
    claims: RefreshTokenClaims = Depends(require_current_session),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.terminate_all_other_sessions(
        claims.user_id, claims.device_id, claims.iat, db,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
async def terminate_device_session(
    device_id: str,
    claims: RefreshTokenClaims = Depends(require_current_session),
    db: AsyncSession = Depends(get_db),
):
    if device_id == claims.device_id:
        raise ForbiddenError("Cannot terminate the current device session")
    await auth_service.terminate_device_session(claims.user_id, device_id, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
