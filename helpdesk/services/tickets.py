from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

import structlog

from helpdesk.models.profile import STAFF_ROLES, Profile
from helpdesk.models.ticket import TICKET_STATUSES, Ticket
from helpdesk.schemas.ticket import TicketCreate
from helpdesk.services.access import (
    STAFF_TICKETS_VIEW,
    TICKETS_VIEW,
    AccessDeniedError,
    Actor,
    forbidden,
)
from helpdesk.services.comments import build_comment
from helpdesk.utils.time import utc_now

logger = structlog.get_logger(__name__)

RESOLVED_STATUSES = ("resolved", "closed")
SORTABLE_COLUMNS = ("created_at", "updated_at", "status", "priority", "title", "department")


class TicketNotFoundError(AccessDeniedError):
    def __init__(self, ticket_id: int, redirect: str = TICKETS_VIEW) -> None:
        super().__init__(404, "Ticket not found", redirect)
        self.ticket_id = ticket_id


class InvalidStatusError(ValueError):
    pass


class InvalidAssigneeError(ValueError):
    pass


def _with_people(query: Select) -> Select:
    return query.options(joinedload(Ticket.requester), joinedload(Ticket.assignee))


def status_change_message(status: str, actor_label: str) -> str:
    return f"Status changed to {status} by {actor_label}"


def assignment_message(assignee_name: str | None, actor_label: str) -> str:
    if assignee_name:
        return f"Ticket assigned to {assignee_name} by {actor_label}"
    return f"Assignment removed by {actor_label}"


def apply_status(ticket: Ticket, new_status: str, now: datetime) -> None:
    """Write the new status. Every transition is allowed, including reopening."""
    if new_status not in TICKET_STATUSES:
        raise InvalidStatusError(f"Unknown status: {new_status}")
    ticket.status = new_status
    if new_status in RESOLVED_STATUSES:
        if ticket.resolved_at is None:
            ticket.resolved_at = now
    else:
        ticket.resolved_at = None
    ticket.updated_at = now


async def create_ticket(session: AsyncSession, actor: Actor, payload: TicketCreate) -> Ticket:
    ticket = Ticket(
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        department=payload.department,
        status="open",
        user_id=actor.account_id,
        assigned_to=None,
        requester=actor.profile,
        assignee=None,
    )
    session.add(ticket)
    await session.commit()
    logger.info(
        "ticket_created",
        ticket_id=ticket.id,
        user_id=actor.account_id,
        priority=ticket.priority,
        department=ticket.department,
    )
    return ticket


def filter_tickets(query: Select, filters: dict[str, Any]) -> Select:
    if filters.get("status"):
        query = query.where(Ticket.status == filters["status"])
    if filters.get("priority"):
        query = query.where(Ticket.priority == filters["priority"])
    if filters.get("department"):
        query = query.where(Ticket.department == filters["department"])
    if "assigned_to" in filters:
        assigned = filters["assigned_to"]
        if assigned is None:
            query = query.where(Ticket.assigned_to.is_(None))
        else:
            query = query.where(Ticket.assigned_to == assigned)
    if filters.get("user_id") is not None:
        query = query.where(Ticket.user_id == filters["user_id"])
    search = (filters.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Ticket.title.ilike(pattern), Ticket.description.ilike(pattern)))
    return query


async def list_tickets(
    session: AsyncSession,
    actor: Actor,
    filters: dict[str, Any] | None = None,
    *,
    skip: int = 0,
    limit: int | None = 25,
    sort: str = "created_at",
    order: str = "desc",
) -> tuple[list[Ticket], int]:
    """Tickets visible to ``actor``: their own for requesters, all for staff."""
    query = filter_tickets(select(Ticket), filters or {})
    if not actor.is_staff:
        query = query.where(Ticket.user_id == actor.account_id)

    total = await session.scalar(select(func.count()).select_from(query.subquery()))

    sort_col = getattr(Ticket, sort if sort in SORTABLE_COLUMNS else "created_at")
    if order.lower() == "asc":
        query = query.order_by(sort_col.asc(), Ticket.id.asc())
    else:
        query = query.order_by(sort_col.desc(), Ticket.id.desc())
    query = _with_people(query).offset(skip)
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().unique().all()), total or 0


async def get_ticket(
    session: AsyncSession, ticket_id: int, redirect: str = TICKETS_VIEW
) -> Ticket:
    """Fetch a ticket with requester and assignee in one round trip."""
    result = await session.execute(_with_people(select(Ticket).where(Ticket.id == ticket_id)))
    ticket = result.scalars().first()
    if ticket is None:
        raise TicketNotFoundError(ticket_id, redirect)
    return ticket


def ensure_can_view(actor: Actor, ticket: Ticket) -> None:
    if ticket.user_id != actor.account_id and not actor.is_staff:
        raise forbidden("You do not have permission to view this ticket", TICKETS_VIEW)


async def get_visible_ticket(session: AsyncSession, actor: Actor, ticket_id: int) -> Ticket:
    ticket = await get_ticket(session, ticket_id)
    ensure_can_view(actor, ticket)
    return ticket


def _ensure_staff(actor: Actor) -> None:
    if not actor.is_staff:
        raise forbidden()


async def set_status(
    session: AsyncSession, actor: Actor, ticket_id: int, new_status: str
) -> Ticket:
    _ensure_staff(actor)
    ticket = await get_ticket(session, ticket_id, STAFF_TICKETS_VIEW)
    previous = ticket.status
    apply_status(ticket, new_status, utc_now())
    session.add(
        build_comment(
            ticket,
            actor,
            status_change_message(new_status, actor.email),
            is_internal=True,
        )
    )
    await session.commit()
    logger.info(
        "ticket_status_changed",
        ticket_id=ticket.id,
        from_status=previous,
        to_status=new_status,
        actor_id=actor.account_id,
    )
    return ticket


async def list_staff(session: AsyncSession) -> list[Profile]:
    result = await session.execute(
        select(Profile).where(Profile.role.in_(STAFF_ROLES)).order_by(Profile.full_name.asc())
    )
    return list(result.scalars().all())


async def assign(
    session: AsyncSession, actor: Actor, ticket_id: int, assignee_id: int | None
) -> Ticket:
    _ensure_staff(actor)
    ticket = await get_ticket(session, ticket_id, STAFF_TICKETS_VIEW)

    assignee: Profile | None = None
    if assignee_id is not None:
        assignee = await session.get(Profile, assignee_id)
        if assignee is None or assignee.role not in STAFF_ROLES:
            raise InvalidAssigneeError("Tickets can only be assigned to agents or admins")

    ticket.assigned_to = assignee.id if assignee else None
    ticket.assignee = assignee
    ticket.updated_at = utc_now()
    session.add(
        build_comment(
            ticket,
            actor,
            assignment_message(assignee.full_name if assignee else None, actor.email),
            is_internal=True,
        )
    )
    await session.commit()
    logger.info(
        "ticket_assigned",
        ticket_id=ticket.id,
        assigned_to=ticket.assigned_to,
        actor_id=actor.account_id,
    )
    return ticket
