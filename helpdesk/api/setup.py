from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.database import get_session
from helpdesk.schemas.profile import AccountCreate, ProfileOut, SetupStatus
from helpdesk.services.provisioning import (
    DuplicateAccountError,
    SetupUnavailableError,
    is_setup_available,
    run_setup,
)

router = APIRouter(prefix="/setup", tags=["setup"])


@router.get("", response_model=SetupStatus)
async def setup_status(session: AsyncSession = Depends(get_session)) -> SetupStatus:
    return SetupStatus(available=await is_setup_available(session))


@router.post("", response_model=ProfileOut, status_code=status.HTTP_201_CREATED)
async def create_initial_admin(
    payload: AccountCreate,
    session: AsyncSession = Depends(get_session),
) -> ProfileOut:
    try:
        profile = await run_setup(
            session,
            full_name=payload.full_name,
            email=payload.email,
            password=payload.password,
        )
    except SetupUnavailableError as exc:
        raise HTTPException(status_code=409, detail="Setup not available") from exc
    except DuplicateAccountError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ProfileOut.model_validate(profile)
