from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func
from sqlmodel import select

from models import UserInvitation, generate_invitation_token
from models.team import invitation_expiry
from repositories.base import Repository


class InvitationRepository(Repository):
    async def get_by_token(self, token: str) -> Optional[UserInvitation]:
        result = await self.session.exec(
            select(UserInvitation).where(UserInvitation.token == token)
        )
        return result.first()

    async def get_by_email(self, email: str) -> Optional[UserInvitation]:
        result = await self.session.exec(
            select(UserInvitation).where(UserInvitation.email == email.strip().lower())
        )
        return result.first()

    async def upsert(self, email: str, name: str, role: str, invited_by: Optional[int]) -> UserInvitation:
        """Create the invitation, or refresh token and expiry when the email was invited before."""
        email = email.strip().lower()
        invitation = await self.get_by_email(email)
        if invitation is None:
            invitation = UserInvitation(email=email, name=name, token=generate_invitation_token())

        invitation.name = name
        invitation.role = role
        invitation.token = generate_invitation_token()
        invitation.expires_at = invitation_expiry()
        invitation.accepted = False
        invitation.invited_by = invited_by
        invitation.updated_at = datetime.utcnow()
        return await self.save(invitation, "Failed to create invitation")

    def mark_accepted(self, invitation: UserInvitation) -> UserInvitation:
        """Stage the acceptance; it lands with the caller's next commit."""
        invitation.accepted = True
        invitation.updated_at = datetime.utcnow()
        self.session.add(invitation)
        return invitation

    async def delete(self, invitation: UserInvitation) -> None:
        await self.session.delete(invitation)
        await self.commit("Failed to delete invitation")

    async def delete_pending_for_email(self, email: str) -> None:
        """Stage removal of unaccepted invitations for ``email``; the caller commits."""
        await self.session.execute(
            delete(UserInvitation)
            .where(
                func.lower(UserInvitation.email) == email.strip().lower(),
                UserInvitation.accepted == False,  # noqa: E712
            )
            .execution_options(synchronize_session="fetch")
        )
