from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.models.audit_log import AuditLog


def snapshot(values: dict[str, Any] | None) -> dict[str, Any] | None:
    """JSON-ready copy of an audited field map; timestamps become ISO strings."""
    if values is None:
        return None
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in values.items()
    }


def record_audit(
    session: AsyncSession,
    actor_id: int | None,
    entity: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> AuditLog:
    """Stage an audit row; it commits with the change it describes."""
    log = AuditLog(
        actor_id=actor_id,
        entity=entity,
        action=action,
        before_json=snapshot(before),
        after_json=snapshot(after),
        ip=ip,
        user_agent=user_agent,
    )
    session.add(log)
    return log
