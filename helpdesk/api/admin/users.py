from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.api.deps import get_request_ip, require_admin, require_staff
from helpdesk.api.utils import list_response, parse_filter
from helpdesk.core.database import get_session
from helpdesk.schemas.profile import (
    ProfileFilter,
    ProfileOut,
    ProfileSummary,
    RoleUpdate,
    UserRegistration,
)
from helpdesk.services.access import Actor
from helpdesk.services.provisioning import (
    DuplicateAccountError,
    ProfileNotFoundError,
    get_profile,
    list_profiles,
    register_user,
    update_role,
)
from helpdesk.services.tickets import list_staff

router = APIRouter(prefix="/admin/users", tags=["admin"])


@router.get("", response_model=dict)
async def list_users(
    skip: int = 0,
    limit: int = 25,
    sort: str = "created_at",
    order: str = "desc",
    filter: str | None = None,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_admin),
) -> dict:
    filters = parse_filter(filter, ProfileFilter)
    profiles, total = await list_profiles(
        session, filters, skip=skip, limit=limit, sort=sort, order=order
    )
    return list_response([ProfileOut.model_validate(item) for item in profiles], total)


@router.get("/staff", response_model=list[ProfileSummary])
async def staff_directory(
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_staff),
) -> list[ProfileSummary]:
    return [ProfileSummary.model_validate(item) for item in await list_staff(session)]


@router.post("", response_model=ProfileOut, status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserRegistration,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_admin),
) -> ProfileOut:
    try:
        profile = await register_user(
            session,
            full_name=payload.full_name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            department=payload.department,
            actor_id=actor.account_id,
            ip=await get_request_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except DuplicateAccountError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ProfileOut.model_validate(profile)


@router.get("/{profile_id}", response_model=ProfileOut)
async def get_user(
    profile_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_admin),
) -> ProfileOut:
    try:
        profile = await get_profile(session, profile_id)
    except ProfileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ProfileOut.model_validate(profile)


@router.put("/{profile_id}/role", response_model=ProfileOut)
async def change_role(
    profile_id: int,
    payload: RoleUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_admin),
) -> ProfileOut:
    try:
        profile = await update_role(
            session,
            actor,
            profile_id,
            payload.role,
            ip=await get_request_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except ProfileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ProfileOut.model_validate(profile)
