from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from helpdesk.api.deps import get_current_actor, get_request_ip
from helpdesk.core.config import settings
from helpdesk.core.database import get_session
from helpdesk.models.account import Account
from helpdesk.models.account_refresh_token import AccountRefreshToken
from helpdesk.models.profile import Profile
from helpdesk.schemas.auth import (
    LoginRequest,
    NavigationOut,
    PasswordChangeRequest,
    RefreshRequest,
    TokenResponse,
)
from helpdesk.schemas.profile import ProfileOut
from helpdesk.services.access import Actor, navigation_for
from helpdesk.services.auth import (
    AuthError,
    create_access_token,
    create_refresh_token,
    hash_refresh_token,
    verify_password,
)
from helpdesk.services.provisioning import change_password
from helpdesk.services.rate_limit import LoginRateLimiter
from helpdesk.utils.time import ensure_aware, utc_now

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

login_limiter = LoginRateLimiter(
    settings.LOGIN_RATE_LIMIT_MAX_ATTEMPTS,
    settings.LOGIN_RATE_LIMIT_WINDOW_SEC,
)


async def _issue_tokens(
    session: AsyncSession, account: Account, request: Request
) -> TokenResponse:
    profile = await session.get(Profile, account.id)
    access_token = create_access_token(account.id, profile.role if profile else None)
    refresh_token, refresh_hash = create_refresh_token()

    record = AccountRefreshToken(
        account_id=account.id,
        token_hash=refresh_hash,
        expires_at=utc_now() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        ip=await get_request_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    session.add(record)
    await session.commit()
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> TokenResponse:
    limiter_key = login_limiter.key_for(await get_request_ip(request), payload.email)
    if login_limiter.blocked(limiter_key):
        logger.warning("login_throttled", email=payload.email)
        raise HTTPException(status_code=429, detail="Too many login attempts")

    result = await session.execute(select(Account).where(Account.email == payload.email))
    account = result.scalars().first()
    if (
        not account
        or not account.is_active
        or not verify_password(payload.password, account.hashed_password)
    ):
        login_limiter.record_failure(limiter_key)
        logger.info("login_failed", email=payload.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    login_limiter.reset(limiter_key)
    account.last_login_at = utc_now()
    logger.info("login_succeeded", account_id=account.id)
    return await _issue_tokens(session, account, request)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    payload: RefreshRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> TokenResponse:
    token_hash = hash_refresh_token(payload.refresh_token)
    result = await session.execute(
        select(AccountRefreshToken).where(AccountRefreshToken.token_hash == token_hash)
    )
    token = result.scalars().first()
    if not token or token.revoked_at or ensure_aware(token.expires_at) < utc_now():
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    account = await session.get(Account, token.account_id)
    if not account or not account.is_active:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    token.revoked_at = utc_now()
    token.last_used_at = utc_now()
    return await _issue_tokens(session, account, request)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    payload: RefreshRequest,
    session: AsyncSession = Depends(get_session),
) -> None:
    token_hash = hash_refresh_token(payload.refresh_token)
    result = await session.execute(
        select(AccountRefreshToken).where(AccountRefreshToken.token_hash == token_hash)
    )
    token = result.scalars().first()
    if token and not token.revoked_at:
        token.revoked_at = utc_now()
        await session.commit()


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
async def update_password(
    payload: PasswordChangeRequest,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> None:
    try:
        await change_password(
            session, actor.account_id, payload.current_password, payload.new_password
        )
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/me", response_model=ProfileOut)
async def me(actor: Actor = Depends(get_current_actor)) -> ProfileOut:
    return ProfileOut.model_validate(actor.profile)


@router.get("/navigation", response_model=NavigationOut)
async def navigation(actor: Actor = Depends(get_current_actor)) -> NavigationOut:
    return NavigationOut(role=actor.role, items=navigation_for(actor.role))
