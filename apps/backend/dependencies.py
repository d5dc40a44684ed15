"""
Centralized FastAPI dependencies for resolving the caller.

Every protected route depends on ``require_auth`` or ``require_user``;
nothing trusts an identity supplied in a request body.
"""

from datetime import datetime
from typing import Optional

from fastapi import Depends, Header
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from database import get_session
from exceptions import AuthError
from models import AuthSession, Profile, hash_token


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


async def get_current_session(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session)
) -> Optional[AuthSession]:
    """
    Extract and validate the session from the Authorization header.

    Returns None for a missing header, an unknown token, or a revoked or
    expired session.
    """
    token = parse_bearer(authorization)
    if not token:
        return None

    result = await session.exec(
        select(AuthSession).where(
            AuthSession.session_token_hash == hash_token(token),
            AuthSession.revoked_at == None,  # noqa: E711
        )
    )
    auth_session = result.first()
    if not auth_session or auth_session.expires_at <= datetime.utcnow():
        return None
    return auth_session


async def require_auth(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session)
) -> AuthSession:
    """Dependency that requires authentication; 401 otherwise."""
    auth_session = await get_current_session(authorization, session)
    if not auth_session or auth_session.user_id is None:
        raise AuthError("Not authenticated")
    return auth_session


async def require_user(
    auth_session: AuthSession = Depends(require_auth),
    session: AsyncSession = Depends(get_session)
) -> Profile:
    """Dependency returning the caller's profile; 401 when the profile is gone."""
    profile = await session.get(Profile, auth_session.user_id)
    if not profile:
        raise AuthError("Not authenticated")
    return profile
