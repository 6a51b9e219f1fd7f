from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from helpdesk.models.account import Account
from helpdesk.models.account_refresh_token import AccountRefreshToken
from helpdesk.models.profile import ROLES, Profile
from helpdesk.models.setup_state import SETUP_STATE_ID, SetupState
from helpdesk.services.access import Actor
from helpdesk.services.audit import record_audit
from helpdesk.services.auth import AuthError, hash_password, verify_password
from helpdesk.utils.time import utc_now

logger = structlog.get_logger(__name__)

PROFILE_SORT_COLUMNS = ("created_at", "updated_at", "full_name", "role", "department")


class ProvisioningError(Exception):
    pass


class DuplicateAccountError(ProvisioningError):
    pass


class SetupUnavailableError(ProvisioningError):
    pass


class ProfileNotFoundError(ProvisioningError):
    pass


async def _email_taken(session: AsyncSession, email: str) -> bool:
    existing = await session.scalar(select(Account.id).where(Account.email == email))
    return existing is not None


async def _mark_setup_complete(session: AsyncSession, admin_id: int) -> None:
    if await session.get(SetupState, SETUP_STATE_ID) is None:
        session.add(SetupState(id=SETUP_STATE_ID, admin_id=admin_id))


def _stage_identity(
    session: AsyncSession,
    *,
    email: str,
    password: str,
    full_name: str,
    role: str,
    department: str | None,
) -> tuple[Account, Profile]:
    if role not in ROLES:
        raise ProvisioningError(f"Unknown role: {role}")
    account = Account(email=email, hashed_password=hash_password(password), is_active=True)
    session.add(account)
    profile = Profile(full_name=full_name, role=role, department=department)
    return account, profile


async def register_user(
    session: AsyncSession,
    *,
    full_name: str,
    email: str,
    password: str,
    role: str = "user",
    department: str | None = None,
    actor_id: int | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
    initial_setup: bool = False,
) -> Profile:
    """Create an identity and its profile in a single transaction.

    Either both rows are committed or neither is, so a failure never leaves an
    account without a profile behind. With ``initial_setup`` the singleton
    ``setup_state`` row is inserted unconditionally, so a second concurrent
    setup fails on its primary key.
    """
    email = email.strip().lower()
    if await _email_taken(session, email):
        raise DuplicateAccountError(f"An account already exists for {email}")

    account, profile = _stage_identity(
        session,
        email=email,
        password=password,
        full_name=full_name,
        role=role,
        department=department,
    )
    try:
        await session.flush()
        profile.id = account.id
        session.add(profile)
        if initial_setup:
            session.add(SetupState(id=SETUP_STATE_ID, admin_id=account.id))
        elif role == "admin":
            await _mark_setup_complete(session, account.id)
        record_audit(
            session,
            actor_id=actor_id,
            entity="profile",
            action="create",
            before=None,
            after={"id": account.id, "email": email, "role": role, "department": department},
            ip=ip,
            user_agent=user_agent,
        )
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.warning("user_registration_rejected", email=email, error=str(exc.orig))
        raise DuplicateAccountError(f"An account already exists for {email}") from exc

    logger.info("user_registered", account_id=account.id, role=role, actor_id=actor_id)
    return profile


async def admin_count(session: AsyncSession) -> int:
    total = await session.scalar(
        select(func.count()).select_from(Profile).where(Profile.role == "admin")
    )
    return total or 0


async def is_setup_available(session: AsyncSession) -> bool:
    if await session.get(SetupState, SETUP_STATE_ID) is not None:
        return False
    return await admin_count(session) == 0


async def run_setup(
    session: AsyncSession, *, full_name: str, email: str, password: str
) -> Profile:
    """Bootstrap the first administrator.

    The singleton ``setup_state`` row is inserted in the same transaction, so
    two concurrent first-run submissions cannot both succeed.
    """
    if not await is_setup_available(session):
        raise SetupUnavailableError("Setup is no longer available")
    try:
        profile = await register_user(
            session,
            full_name=full_name,
            email=email,
            password=password,
            role="admin",
            initial_setup=True,
        )
    except DuplicateAccountError:
        if not await is_setup_available(session):
            raise SetupUnavailableError("Setup is no longer available") from None
        raise
    logger.info("initial_admin_created", account_id=profile.id)
    return profile


async def get_profile(session: AsyncSession, profile_id: int) -> Profile:
    profile = await session.get(Profile, profile_id)
    if profile is None:
        raise ProfileNotFoundError("User not found")
    return profile


async def update_role(
    session: AsyncSession,
    actor: Actor,
    profile_id: int,
    role: str,
    ip: str | None = None,
    user_agent: str | None = None,
) -> Profile:
    if role not in ROLES:
        raise ProvisioningError(f"Unknown role: {role}")
    profile = await get_profile(session, profile_id)
    before = {"role": profile.role, "updated_at": profile.updated_at}
    profile.role = role
    profile.updated_at = utc_now()
    if role == "admin":
        await _mark_setup_complete(session, profile.id)
    record_audit(
        session,
        actor_id=actor.account_id,
        entity="profile",
        action="update",
        before=before,
        after={"role": role, "updated_at": profile.updated_at},
        ip=ip,
        user_agent=user_agent,
    )
    await session.commit()
    logger.info(
        "profile_role_updated",
        profile_id=profile.id,
        from_role=before["role"],
        to_role=role,
        actor_id=actor.account_id,
    )
    return profile


async def update_profile(
    session: AsyncSession, actor: Actor, changes: dict[str, Any]
) -> Profile:
    profile = actor.profile
    for key in ("full_name", "avatar_url"):
        if key in changes:
            if key == "full_name" and not changes[key]:
                continue
            setattr(profile, key, changes[key])
    profile.updated_at = utc_now()
    await session.commit()
    return profile


async def list_profiles(
    session: AsyncSession,
    filters: dict[str, Any],
    *,
    skip: int = 0,
    limit: int = 25,
    sort: str = "created_at",
    order: str = "desc",
) -> tuple[list[Profile], int]:
    query = select(Profile)
    if filters.get("role") and filters["role"] != "all":
        query = query.where(Profile.role == filters["role"])
    if filters.get("department"):
        query = query.where(Profile.department == filters["department"])
    search = (filters.get("search") or "").strip()
    if search:
        query = query.where(Profile.full_name.ilike(f"%{search}%"))

    total = await session.scalar(select(func.count()).select_from(query.subquery()))

    sort_col = getattr(Profile, sort if sort in PROFILE_SORT_COLUMNS else "created_at")
    if order.lower() == "asc":
        query = query.order_by(sort_col.asc(), Profile.id.asc())
    else:
        query = query.order_by(sort_col.desc(), Profile.id.desc())
    result = await session.execute(query.offset(skip).limit(limit))
    return list(result.scalars().all()), total or 0


async def change_password(
    session: AsyncSession, account_id: int, current_password: str, new_password: str
) -> None:
    account = await session.get(Account, account_id)
    if account is None or not verify_password(current_password, account.hashed_password):
        raise AuthError("Current password is incorrect")
    account.hashed_password = hash_password(new_password)

    result = await session.execute(
        select(AccountRefreshToken)
        .where(AccountRefreshToken.account_id == account_id)
        .where(AccountRefreshToken.revoked_at.is_(None))
    )
    now = utc_now()
    for token in result.scalars().all():
        token.revoked_at = now
    await session.commit()
    logger.info("password_changed", account_id=account_id)
