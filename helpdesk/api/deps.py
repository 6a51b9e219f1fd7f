from __future__ import annotations

import ipaddress

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.core.database import get_session
from helpdesk.core.logging import bind_actor
from helpdesk.services.access import Actor, ensure_role, resolve_actor, unauthenticated
from helpdesk.services.auth import AuthError, account_id_from_token

security = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> Actor:
    if credentials is None:
        raise unauthenticated()
    try:
        account_id = account_id_from_token(credentials.credentials)
    except AuthError as exc:
        raise unauthenticated(str(exc)) from exc

    actor = ensure_role(await resolve_actor(session, account_id), ())
    bind_actor(actor.account_id, actor.role)
    return actor


def require_role(*roles: str):
    async def _guard(actor: Actor = Depends(get_current_actor)) -> Actor:
        return ensure_role(actor, roles)

    return _guard


require_staff = require_role("agent", "admin")
require_admin = require_role("admin")


async def get_request_ip(request: Request) -> str | None:
    def _valid_ip(raw: str | None) -> str | None:
        if not raw:
            return None
        try:
            return str(ipaddress.ip_address(raw.strip()))
        except ValueError:
            return None

    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            for candidate in forwarded.split(","):
                parsed = _valid_ip(candidate)
                if parsed:
                    return parsed
        real_ip = _valid_ip(request.headers.get("x-real-ip"))
        if real_ip:
            return real_ip

    if request.client:
        return _valid_ip(request.client.host)
    return None
