"""Tests for centralized authentication dependencies."""

from datetime import datetime, timedelta

import pytest
from dependencies import get_current_session, parse_bearer, require_auth, require_user
from exceptions import AuthError
from models import AuthSession, Profile, hash_token, generate_session_token


async def _session_for(session, user, **fields):
    token = generate_session_token()
    auth_session = AuthSession(
        email=user.email,
        user_id=user.id,
        session_token_hash=hash_token(token),
        **fields,
    )
    session.add(auth_session)
    await session.commit()
    return token


@pytest.fixture(name="test_user")
def test_user_fixture(auth_user_and_token):
    user, _ = auth_user_and_token
    return user


def test_parse_bearer():
    assert parse_bearer(None) is None
    assert parse_bearer("Basic abc") is None
    assert parse_bearer("Bearer ") is None
    assert parse_bearer("Bearer abc ") == "abc"


@pytest.mark.asyncio
async def test_get_current_session_no_header(session):
    """Test get_current_session with no authorization header."""
    result = await get_current_session(authorization=None, session=session)
    assert result is None


@pytest.mark.asyncio
async def test_get_current_session_invalid_token(session):
    result = await get_current_session(
        authorization="Bearer invalid_token",
        session=session
    )
    assert result is None


@pytest.mark.asyncio
async def test_get_current_session_valid_token(session, test_user):
    token = await _session_for(session, test_user)

    result = await get_current_session(
        authorization=f"Bearer {token}",
        session=session
    )
    assert result is not None
    assert result.user_id == test_user.id


@pytest.mark.asyncio
async def test_get_current_session_ignores_revoked_and_expired(session, test_user):
    revoked = await _session_for(session, test_user, revoked_at=datetime.utcnow())
    expired = await _session_for(session, test_user, expires_at=datetime.utcnow() - timedelta(seconds=1))

    assert await get_current_session(authorization=f"Bearer {revoked}", session=session) is None
    assert await get_current_session(authorization=f"Bearer {expired}", session=session) is None


@pytest.mark.asyncio
async def test_require_auth_success(session, test_user):
    token = await _session_for(session, test_user)

    result = await require_auth(
        authorization=f"Bearer {token}",
        session=session
    )
    assert result.user_id == test_user.id


@pytest.mark.asyncio
async def test_require_auth_failure(session):
    """Test require_auth raises AuthError when not authenticated."""
    with pytest.raises(AuthError) as exc_info:
        await require_auth(authorization=None, session=session)

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Not authenticated"


@pytest.mark.asyncio
async def test_require_user_returns_profile(session, test_user):
    token = await _session_for(session, test_user)
    auth_session = await require_auth(authorization=f"Bearer {token}", session=session)

    profile = await require_user(auth_session=auth_session, session=session)
    assert isinstance(profile, Profile)
    assert profile.email == "owner@example.com"


@pytest.mark.asyncio
async def test_require_user_missing_profile(session):
    orphan = AuthSession(email="gone@example.com", user_id=9999, session_token_hash=hash_token("x"))
    with pytest.raises(AuthError):
        await require_user(auth_session=orphan, session=session)
