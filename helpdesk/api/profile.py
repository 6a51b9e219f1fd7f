from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.api.deps import get_current_actor
from helpdesk.core.database import get_session
from helpdesk.schemas.profile import ProfileOut, ProfileUpdate
from helpdesk.services.access import Actor
from helpdesk.services.provisioning import update_profile

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileOut)
async def get_own_profile(actor: Actor = Depends(get_current_actor)) -> ProfileOut:
    return ProfileOut.model_validate(actor.profile)


@router.patch("", response_model=ProfileOut)
async def update_own_profile(
    payload: ProfileUpdate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> ProfileOut:
    profile = await update_profile(session, actor, payload.model_dump(exclude_unset=True))
    return ProfileOut.model_validate(profile)
