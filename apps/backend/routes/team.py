"""Team roster routes and email invitations."""
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from audit import audit_log
from database import get_session
from dependencies import require_user
from exceptions import EmailServiceError, ValidationError
from models import Profile
from observability.logging import get_logger
from observability.metrics import business_events_total
from repositories import InvitationRepository, ProfileRepository, TeamMemberRepository
from schemas import InvitationRead, InviteRequest, TeamMemberCreate, TeamMemberRead, TeamMemberUpdate
from services.email import send_invitation_email

logger = get_logger(__name__)

router = APIRouter(prefix="/api/team", tags=["team"])


@router.get("", response_model=List[TeamMemberRead])
async def list_team(
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    members = await TeamMemberRepository(session).list()
    return [TeamMemberRead.model_validate(m) for m in members]


@router.post("", response_model=TeamMemberRead, status_code=201)
async def create_team_member(
    member_in: TeamMemberCreate,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    member = await TeamMemberRepository(session).create(member_in)
    return TeamMemberRead.model_validate(member)


@router.put("/{member_id}", response_model=TeamMemberRead)
async def update_team_member(
    member_id: int,
    member_in: TeamMemberUpdate,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    member = await TeamMemberRepository(session).update(member_id, member_in)
    return TeamMemberRead.model_validate(member)


@router.delete("/{member_id}")
async def delete_team_member(
    member_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await TeamMemberRepository(session).delete(member_id)
    return {"success": True}


@router.post("/invite")
async def invite_user(
    invite_in: InviteRequest,
    request: Request,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Invite someone by email.

    Re-inviting refreshes the token and expiry. If the email cannot be
    delivered the invitation is removed again and the caller gets a 500.
    """
    inviter_id = profile.id
    inviter_name = profile.name or profile.email or "A team member"

    if not invite_in.email or not invite_in.name or not invite_in.name.strip():
        raise ValidationError("Email and name are required")
    email = str(invite_in.email).lower()

    if await TeamMemberRepository(session).find_by_email(email):
        raise ValidationError("This person is already a team member")
    if await ProfileRepository(session).find_by_email(email):
        raise ValidationError("User with this email already exists")

    invitations = InvitationRepository(session)
    invitation = await invitations.upsert(
        email=email,
        name=invite_in.name.strip(),
        role=invite_in.role or "member",
        invited_by=inviter_id,
    )
    response = {
        "success": True,
        "message": "Invitation sent successfully",
        "invitation": {
            "id": invitation.id,
            **InvitationRead.model_validate(invitation).model_dump(by_alias=True, mode="json"),
        },
    }

    result = await send_invitation_email(
        to_email=email,
        name=invitation.name,
        token=invitation.token,
        role=invitation.role,
        invited_by=inviter_name,
    )
    if not result.success:
        logger.error(f"[Invite] Email to {email} failed, removing invitation: {result.error}")
        await invitations.delete(invitation)
        raise EmailServiceError("Failed to send invitation email. Please try again.")

    business_events_total.labels(event_type="invitation_sent").inc()
    await audit_log(
        session=session,
        action="invitation.create",
        user_id=inviter_id,
        resource_type="invitation",
        resource_id=str(response["invitation"]["id"]),
        details={"email": email, "role": response["invitation"]["role"]},
        request=request,
    )
    return response
