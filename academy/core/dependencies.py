from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import get_session
from academy.core.exceptions import AuthenticationError, AuthorizationError
from academy.core.security import jwt_manager
from academy.staff.crud.coaches import get_coach_by_auth_id

security = HTTPBearer(
    scheme_name="Access token",
    description="Bearer token issued by the identity provider",
    auto_error=False,
)


async def get_current_coach(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_session),
):
    """Resolve the bearer token to the coach account it belongs to"""
    if credentials is None or not credentials.credentials.strip():
        raise AuthenticationError("Authentication credentials are required")

    payload = jwt_manager.decode_token(credentials.credentials)
    coach = await get_coach_by_auth_id(db, payload["sub"])
    if coach is None:
        raise AuthorizationError("No coach account is linked to this user")

    # Picked up by request logging and error handlers
    request.state.coach_id = coach.id
    request.state.coach_role = coach.role
    return coach


async def require_admin(coach=Depends(get_current_coach)):
    if coach.role != "admin":
        raise AuthorizationError("This action is only available to administrators")
    return coach


def ensure_self_or_admin(current_coach, coach_id: int):
    """Coaches act on their own records; administrators on anyone's"""
    if current_coach.role != "admin" and current_coach.id != coach_id:
        raise AuthorizationError("Coaches can only act on their own records")
