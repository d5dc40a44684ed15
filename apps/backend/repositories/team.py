from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlmodel import select

from exceptions import NotFoundError, ValidationError
from models import TeamMember
from repositories.base import Repository
from repositories.invitations import InvitationRepository
from schemas import TeamMemberCreate, TeamMemberUpdate


class TeamMemberRepository(Repository):
    async def list(self) -> List[TeamMember]:
        result = await self.session.exec(select(TeamMember).order_by(TeamMember.name))
        return list(result.all())

    async def get_by_id(self, member_id: int) -> TeamMember:
        member = await self.session.get(TeamMember, member_id)
        if not member:
            raise NotFoundError("Team member not found")
        return member

    async def find_by_email(self, email: str) -> Optional[TeamMember]:
        if not email:
            return None
        result = await self.session.exec(
            select(TeamMember).where(func.lower(TeamMember.email) == email.strip().lower())
        )
        return result.first()

    async def create(self, data: TeamMemberCreate) -> TeamMember:
        if not data.name or not data.name.strip():
            raise ValidationError("Name is required")

        member = TeamMember(
            name=data.name.strip(),
            email=(data.email or "").strip(),
            role=data.role or "Developer",
        )
        return await self.save(member, "Failed to create team member")

    async def update(self, member_id: int, data: TeamMemberUpdate) -> TeamMember:
        member = await self.get_by_id(member_id)

        fields = data.to_row_fields()
        if "name" in fields and not fields["name"].strip():
            raise ValidationError("Name is required")

        for key, value in fields.items():
            setattr(member, key, value.strip() if isinstance(value, str) else value)
        member.updated_at = datetime.utcnow()
        return await self.save(member, "Failed to update team member")

    async def delete(self, member_id: int) -> None:
        """Remove a roster entry and any still-pending invitation for its email."""
        member = await self.get_by_id(member_id)

        if member.email:
            await InvitationRepository(self.session).delete_pending_for_email(member.email)
        await self.session.delete(member)
        await self.commit("Failed to delete team member")
