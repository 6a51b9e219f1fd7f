from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.api.deps import require_staff
from helpdesk.core.database import get_session
from helpdesk.schemas.report import ReportOut
from helpdesk.services.access import Actor
from helpdesk.services.reports import report_to_csv, ticket_report
from helpdesk.utils.time import utc_now

router = APIRouter(prefix="/admin/reports", tags=["admin"])


@router.get("", response_model=ReportOut)
async def report_summary(
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_staff),
) -> ReportOut:
    return ReportOut.model_validate(await ticket_report(session))


@router.get("/export")
async def report_export(
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_staff),
) -> Response:
    report = await ticket_report(session)
    filename = f"ticket-report-{utc_now().date().isoformat()}.csv"
    return Response(
        content=report_to_csv(report),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
