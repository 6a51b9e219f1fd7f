from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.models.account import Account
from helpdesk.models.profile import STAFF_ROLES, Profile

LOGIN_PATH = "/auth/login"
DEFAULT_VIEW = "/dashboard"
TICKETS_VIEW = "/dashboard/tickets"
STAFF_TICKETS_VIEW = "/dashboard/admin/tickets"


class AccessDeniedError(Exception):
    """Raised when the caller may not see a view; carries where to send them."""

    def __init__(self, status_code: int, message: str, redirect: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.redirect = redirect


def unauthenticated(message: str = "Authentication required") -> AccessDeniedError:
    return AccessDeniedError(401, message, LOGIN_PATH)


def forbidden(
    message: str = "You do not have permission to access this page",
    redirect: str = DEFAULT_VIEW,
) -> AccessDeniedError:
    return AccessDeniedError(403, message, redirect)


@dataclass(frozen=True)
class Actor:
    account_id: int
    email: str
    profile: Profile

    @property
    def role(self) -> str:
        return self.profile.role

    @property
    def full_name(self) -> str:
        return self.profile.full_name

    @property
    def is_staff(self) -> bool:
        return self.profile.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.profile.role == "admin"


async def resolve_actor(session: AsyncSession, account_id: int | None) -> Actor | None:
    """Load the identity and its profile; ``None`` means the caller is unauthenticated."""
    if account_id is None:
        return None
    account = await session.get(Account, account_id)
    if account is None or not account.is_active:
        return None
    profile = await session.get(Profile, account_id)
    if profile is None:
        return None
    return Actor(account_id=account.id, email=account.email, profile=profile)


def ensure_role(actor: Actor | None, roles: tuple[str, ...]) -> Actor:
    if actor is None:
        raise unauthenticated()
    if roles and actor.role not in roles:
        raise forbidden()
    return actor


_COMMON_NAV = (
    ("/dashboard", "Dashboard", ()),
    ("/dashboard/tickets", "My Tickets", ()),
    ("/dashboard/tickets/new", "New Ticket", ()),
)
_ROLE_NAV = (
    ("/dashboard/admin/tickets", "All Tickets", STAFF_ROLES),
    ("/dashboard/admin/users", "Users", ("admin",)),
    ("/dashboard/admin/register", "Register User", ("admin",)),
    ("/dashboard/admin/reports", "Reports", STAFF_ROLES),
    ("/dashboard/admin/settings", "Settings", ("admin",)),
)


def navigation_for(role: str) -> list[dict[str, str]]:
    items = []
    for href, title, roles in _COMMON_NAV + _ROLE_NAV:
        if roles and role not in roles:
            continue
        items.append({"href": href, "title": title})
    return items
