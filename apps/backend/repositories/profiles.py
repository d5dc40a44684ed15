from typing import List, Optional

from sqlalchemy import func, or_
from sqlmodel import select

from models import AuthIdentity, Profile, hash_password
from repositories.base import Repository


class ProfileRepository(Repository):
    async def list_all(self) -> List[Profile]:
        result = await self.session.exec(select(Profile).order_by(Profile.created_at, Profile.id))
        return list(result.all())

    async def get(self, profile_id: int) -> Optional[Profile]:
        return await self.session.get(Profile, profile_id)

    async def find_by_email(self, email: str) -> Optional[Profile]:
        if not email:
            return None
        result = await self.session.exec(
            select(Profile).where(func.lower(Profile.email) == email.strip().lower())
        )
        return result.first()

    async def find_by_assignee(self, assignee: Optional[str]) -> Optional[Profile]:
        """
        Resolve a free-text assignee to a profile.

        Exact name match first, then email; the oldest profile wins on duplicates.
        """
        if not assignee or not assignee.strip():
            return None
        text = assignee.strip()

        result = await self.session.exec(
            select(Profile)
            .where(or_(Profile.name == text, func.lower(Profile.email) == text.lower()))
            .order_by(Profile.created_at, Profile.id)
        )
        candidates = result.all()
        for profile in candidates:
            if profile.name == text:
                return profile
        return candidates[0] if candidates else None

    async def create_with_password(self, email: str, name: Optional[str], password: str) -> Profile:
        """Create a profile and its password identity, committing anything else staged on the session with them."""
        profile = Profile(email=email.strip().lower(), name=name)
        self.session.add(profile)
        await self.session.flush()

        self.session.add(AuthIdentity(
            profile_id=profile.id,
            email=profile.email,
            password_hash=hash_password(password),
        ))
        await self.commit("Failed to create account")
        await self.session.refresh(profile)
        return profile

    async def get_identity(self, email: str) -> Optional[AuthIdentity]:
        result = await self.session.exec(
            select(AuthIdentity).where(AuthIdentity.email == email.strip().lower())
        )
        return result.first()
