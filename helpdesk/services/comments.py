from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

import structlog

from helpdesk.models.ticket import Ticket
from helpdesk.models.ticket_comment import TicketComment
from helpdesk.services.access import Actor

logger = structlog.get_logger(__name__)


class EmptyCommentError(ValueError):
    pass


def comments_query(ticket_id: int, actor: Actor):
    query = (
        select(TicketComment)
        .options(joinedload(TicketComment.author))
        .where(TicketComment.ticket_id == ticket_id)
    )
    # Internal remarks never leave the store for non-staff callers.
    if not actor.is_staff:
        query = query.where(TicketComment.is_internal.is_(False))
    return query.order_by(TicketComment.created_at.asc(), TicketComment.id.asc())


async def list_comments(
    session: AsyncSession, actor: Actor, ticket_id: int
) -> list[TicketComment]:
    result = await session.execute(comments_query(ticket_id, actor))
    return list(result.scalars().unique().all())


def build_comment(
    ticket: Ticket, actor: Actor, content: str, is_internal: bool
) -> TicketComment:
    return TicketComment(
        ticket_id=ticket.id,
        user_id=actor.account_id,
        content=content,
        is_internal=is_internal and actor.is_staff,
        author=actor.profile,
    )


async def post_comment(
    session: AsyncSession,
    actor: Actor,
    ticket: Ticket,
    content: str,
    is_internal: bool = False,
) -> TicketComment:
    """Append a remark to ``ticket``.

    Requesters can only write public remarks; the internal flag they send is
    dropped. The returned row already carries its author for display.
    """
    if not content or not content.strip():
        raise EmptyCommentError("Comment must not be empty")

    comment = build_comment(ticket, actor, content.strip(), is_internal)
    session.add(comment)
    await session.commit()
    logger.info(
        "ticket_comment_added",
        ticket_id=ticket.id,
        comment_id=comment.id,
        author_id=actor.account_id,
        is_internal=comment.is_internal,
    )
    return comment
