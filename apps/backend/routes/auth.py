"""Authentication routes - password login, signup, logout and invitation acceptance."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from audit import audit_log
from database import get_session
from dependencies import require_auth
from exceptions import AuthError, NotFoundError, ValidationError
from models import AuthSession, Profile, generate_session_token, hash_token, verify_password
from observability.logging import get_logger
from observability.metrics import business_events_total
from repositories import InvitationRepository, ProfileRepository
from schemas import (
    AuthResponse,
    InvitationRead,
    LoginRequest,
    SessionRead,
    SetupPasswordRequest,
    SignupRequest,
    UserRead,
)
from services.email import send_admin_signup_notification, send_welcome_email
from services.side_effects import SideEffects, get_side_effects

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 8


async def open_session(session: AsyncSession, profile: Profile) -> SessionRead:
    """Issue a bearer token for ``profile``; only its hash is stored."""
    token = generate_session_token()
    auth_session = AuthSession(
        email=profile.email,
        user_id=profile.id,
        session_token_hash=hash_token(token),
    )
    session.add(auth_session)
    await session.commit()
    await session.refresh(auth_session)
    return SessionRead(access_token=token, expires_at=auth_session.expires_at)


def _check_password(password: Optional[str]) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password must be at least 8 characters long")


async def _welcome_email(session: AsyncSession, email: str, name: Optional[str]) -> None:
    result = await send_welcome_email(email, name)
    if not result.success:
        raise RuntimeError(result.error or "Welcome email failed")


async def _admin_signup_email(session: AsyncSession, email: str, name: Optional[str]) -> None:
    result = await send_admin_signup_notification(email, name)
    if not result.success:
        logger.info(f"[Auth] Admin signup notification not sent: {result.error}")


@router.post("/login", response_model=AuthResponse)
async def login(
    login_in: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    if not login_in.email or not login_in.password:
        raise ValidationError("Email and password are required")

    profiles = ProfileRepository(session)
    identity = await profiles.get_identity(login_in.email)
    if not identity or not verify_password(login_in.password, identity.password_hash):
        await audit_log(
            session=session,
            action="auth.login",
            details={"email": login_in.email.lower()},
            success=False,
            error_message="invalid credentials",
            request=request,
        )
        raise AuthError("Invalid email or password. Please check your credentials and try again.")

    profile = await profiles.get(identity.profile_id)
    if not profile:
        raise AuthError("Invalid email or password. Please check your credentials and try again.")

    user = UserRead.model_validate(profile)
    session_read = await open_session(session, profile)
    await audit_log(session=session, action="auth.login", user_id=user.id, request=request)
    return AuthResponse(user=user, session=session_read)


@router.post("/logout")
async def logout(
    request: Request,
    auth_session: AuthSession = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    user_id = auth_session.user_id
    auth_session.revoked_at = datetime.utcnow()
    session.add(auth_session)
    await session.commit()
    await audit_log(session=session, action="auth.logout", user_id=user_id, request=request)
    return {"success": True}


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(
    signup_in: SignupRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
    effects: SideEffects = Depends(get_side_effects),
):
    """Create an account directly. Welcome and admin emails never block signup."""
    if not signup_in.email or not signup_in.password:
        raise ValidationError("Email and password are required")
    _check_password(signup_in.password)

    email = str(signup_in.email).lower()
    profiles = ProfileRepository(session)
    if await profiles.find_by_email(email):
        raise ValidationError("User with this email already exists")

    name = (signup_in.name or "").strip() or None
    profile = await profiles.create_with_password(email, name, signup_in.password)
    user = UserRead.model_validate(profile)
    session_read = await open_session(session, profile)

    business_events_total.labels(event_type="signup").inc()
    await audit_log(session=session, action="auth.signup", user_id=user.id, request=request)

    effects.schedule("welcome_email", _welcome_email, email, name)
    effects.schedule("admin_signup_email", _admin_signup_email, email, name)
    return AuthResponse(message="Account created successfully", user=user, session=session_read)


@router.get("/setup-password")
async def validate_invitation(
    token: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
):
    """Check an invitation token before showing the set-password form."""
    if not token:
        raise ValidationError("Token is required")

    invitation = await InvitationRepository(session).get_by_token(token)
    if not invitation:
        raise NotFoundError("Invalid invitation token")
    if invitation.accepted:
        raise ValidationError("This invitation has already been accepted")
    if invitation.is_expired:
        raise ValidationError("This invitation has expired")

    return {
        "valid": True,
        "invitation": InvitationRead.model_validate(invitation).model_dump(by_alias=True, mode="json"),
    }


@router.post("/setup-password", response_model=AuthResponse)
async def setup_password(
    setup_in: SetupPasswordRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """
    Consume an invitation: create the profile and its password identity,
    mark the invitation accepted, and sign the new user in.
    """
    if not setup_in.token or not setup_in.password:
        raise ValidationError("Token and password are required")
    _check_password(setup_in.password)

    invitations = InvitationRepository(session)
    invitation = await invitations.get_by_token(setup_in.token)
    if not invitation or invitation.accepted:
        raise NotFoundError("Invalid or expired invitation token")
    if invitation.is_expired:
        raise ValidationError("This invitation has expired")

    profiles = ProfileRepository(session)
    if await profiles.find_by_email(invitation.email):
        raise ValidationError("User with this email already exists")

    invitation_id = invitation.id
    # Staged so the account and the accepted invitation land in one commit
    invitations.mark_accepted(invitation)
    profile = await profiles.create_with_password(invitation.email, invitation.name, setup_in.password)

    user = UserRead.model_validate(profile)
    session_read = await open_session(session, profile)
    await audit_log(
        session=session,
        action="invitation.accept",
        user_id=user.id,
        resource_type="invitation",
        resource_id=str(invitation_id),
        request=request,
    )
    return AuthResponse(message="Account created successfully", user=user, session=session_read)
