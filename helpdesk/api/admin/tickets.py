from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.api.deps import require_staff
from helpdesk.api.utils import list_response, parse_filter
from helpdesk.core.database import get_session
from helpdesk.schemas.ticket import (
    AssignmentUpdate,
    CommentOut,
    StatusUpdate,
    TicketDetailOut,
    TicketFilter,
    TicketUpdateResult,
)
from helpdesk.services.access import STAFF_TICKETS_VIEW, Actor
from helpdesk.services.comments import list_comments
from helpdesk.services.tickets import (
    InvalidAssigneeError,
    assign,
    get_ticket,
    list_tickets,
    set_status,
)

router = APIRouter(prefix="/admin/tickets", tags=["admin"])


async def _update_result(session: AsyncSession, actor: Actor, ticket) -> TicketUpdateResult:
    comments = await list_comments(session, actor, ticket.id)
    return TicketUpdateResult(
        ticket=TicketDetailOut.model_validate(ticket),
        comments=[CommentOut.model_validate(item) for item in comments],
    )


@router.get("", response_model=dict)
async def all_tickets(
    skip: int = 0,
    limit: int = 25,
    sort: str = "created_at",
    order: str = "desc",
    filter: str | None = None,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_staff),
) -> dict:
    filters = parse_filter(filter, TicketFilter)
    tickets, total = await list_tickets(
        session, actor, filters, skip=skip, limit=limit, sort=sort, order=order
    )
    return list_response([TicketDetailOut.model_validate(item) for item in tickets], total)


@router.get("/{ticket_id}", response_model=TicketDetailOut)
async def staff_ticket_detail(
    ticket_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_staff),
) -> TicketDetailOut:
    ticket = await get_ticket(session, ticket_id, STAFF_TICKETS_VIEW)
    return TicketDetailOut.model_validate(ticket)


@router.put("/{ticket_id}/status", response_model=TicketUpdateResult)
async def update_status(
    ticket_id: int,
    payload: StatusUpdate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_staff),
) -> TicketUpdateResult:
    ticket = await set_status(session, actor, ticket_id, payload.status)
    return await _update_result(session, actor, ticket)


@router.put("/{ticket_id}/assignee", response_model=TicketUpdateResult)
async def update_assignee(
    ticket_id: int,
    payload: AssignmentUpdate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_staff),
) -> TicketUpdateResult:
    try:
        ticket = await assign(session, actor, ticket_id, payload.assigned_to)
    except InvalidAssigneeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return await _update_result(session, actor, ticket)
