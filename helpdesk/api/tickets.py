from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.api.deps import get_current_actor
from helpdesk.api.utils import list_response
from helpdesk.core.database import get_session
from helpdesk.models.ticket import DEPARTMENTS
from helpdesk.schemas.ticket import (
    CommentCreate,
    CommentOut,
    TicketCreate,
    TicketDetailOut,
    TicketOut,
    TicketStatus,
)
from helpdesk.services.access import Actor
from helpdesk.services.comments import EmptyCommentError, list_comments, post_comment
from helpdesk.services.tickets import create_ticket, get_visible_ticket, list_tickets

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.get("/departments", response_model=list[str])
async def departments(actor: Actor = Depends(get_current_actor)) -> list[str]:
    return list(DEPARTMENTS)


@router.get("", response_model=dict)
async def my_tickets(
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    search: str | None = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=25, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> dict:
    tickets, total = await list_tickets(
        session,
        actor,
        {"status": status_filter, "search": search},
        skip=skip,
        limit=limit,
    )
    return list_response([TicketOut.model_validate(item) for item in tickets], total)


@router.post("", response_model=TicketOut, status_code=status.HTTP_201_CREATED)
async def open_ticket(
    payload: TicketCreate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> TicketOut:
    ticket = await create_ticket(session, actor, payload)
    return TicketOut.model_validate(ticket)


@router.get("/{ticket_id}", response_model=TicketDetailOut)
async def ticket_detail(
    ticket_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> TicketDetailOut:
    ticket = await get_visible_ticket(session, actor, ticket_id)
    return TicketDetailOut.model_validate(ticket)


@router.get("/{ticket_id}/comments", response_model=list[CommentOut])
async def ticket_comments(
    ticket_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> list[CommentOut]:
    ticket = await get_visible_ticket(session, actor, ticket_id)
    comments = await list_comments(session, actor, ticket.id)
    return [CommentOut.model_validate(item) for item in comments]


@router.post(
    "/{ticket_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    ticket_id: int,
    payload: CommentCreate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> CommentOut:
    ticket = await get_visible_ticket(session, actor, ticket_id)
    try:
        comment = await post_comment(
            session, actor, ticket, payload.content, payload.is_internal
        )
    except EmptyCommentError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return CommentOut.model_validate(comment)
