"""User directory - the caller plus every profile, for assignee pickers."""
from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from database import get_session
from dependencies import require_user
from models import Profile
from repositories import ProfileRepository
from schemas import CurrentUserRead, ProfileRead, UsersResponse

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=UsersResponse)
async def list_users(
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    profiles = await ProfileRepository(session).list_all()
    return UsersResponse(
        current_user=CurrentUserRead.model_validate(profile),
        all_profiles=[ProfileRead.model_validate(p) for p in profiles],
    )
