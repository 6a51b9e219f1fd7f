from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.api.deps import get_current_actor
from helpdesk.core.database import get_session
from helpdesk.schemas.ticket import TicketOut
from helpdesk.services.access import Actor
from helpdesk.services.reports import dashboard_summary

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=dict)
async def dashboard(
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> dict:
    summary = await dashboard_summary(session, actor)
    return {
        "role": actor.role,
        "stats": summary["stats"],
        "recent": [TicketOut.model_validate(item) for item in summary["recent"]],
        "status_chart": summary["status_chart"],
    }
