"""Aggregate ticket reports.

All figures are computed in memory from the full ticket set, the way the
dashboard charts consume them.
"""
from __future__ import annotations

import csv
import io
from collections import Counter
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.models.ticket import TICKET_STATUSES, Ticket
from helpdesk.services.access import Actor
from helpdesk.utils.time import ensure_aware, resolve_timezone, utc_now

DAILY_WINDOW_DAYS = 7


class TicketLike(Protocol):
    status: str
    department: str
    created_at: datetime
    resolved_at: datetime | None


def status_histogram(tickets: Iterable[TicketLike]) -> dict[str, int]:
    counts = Counter(ticket.status for ticket in tickets)
    return {status: counts.get(status, 0) for status in TICKET_STATUSES}


def department_histogram(tickets: Iterable[TicketLike]) -> dict[str, int]:
    counts = Counter(ticket.department for ticket in tickets)
    return dict(sorted(counts.items()))


def daily_histogram(
    tickets: Iterable[TicketLike], now: datetime, tz: tzinfo
) -> list[dict]:
    """Tickets per calendar day for today and the six days before it."""
    today = ensure_aware(now).astimezone(tz).date()
    days = [today - timedelta(days=offset) for offset in range(DAILY_WINDOW_DAYS - 1, -1, -1)]
    counts = Counter(
        ensure_aware(ticket.created_at).astimezone(tz).date()
        for ticket in tickets
        if ticket.created_at is not None
    )
    return [
        {"date": day.isoformat(), "label": day.strftime("%d/%m"), "tickets": counts.get(day, 0)}
        for day in days
    ]


def average_resolution_hours(tickets: Iterable[TicketLike]) -> float | None:
    durations = [
        (ensure_aware(ticket.resolved_at) - ensure_aware(ticket.created_at)).total_seconds()
        for ticket in tickets
        if ticket.resolved_at is not None and ticket.created_at is not None
    ]
    if not durations:
        return None
    return round(sum(durations) / len(durations) / 3600, 1)


def build_report(
    tickets: Iterable[TicketLike], now: datetime | None = None, tz: tzinfo | None = None
) -> dict:
    tickets = list(tickets)
    now = now or utc_now()
    tz = tz or resolve_timezone(settings.REPORT_TIMEZONE)
    by_status = status_histogram(tickets)
    by_department = department_histogram(tickets)
    return {
        "totals": {"total": len(tickets), **by_status},
        "by_status": [{"name": name, "value": value} for name, value in by_status.items()],
        "by_department": [
            {"name": name, "value": value} for name, value in by_department.items()
        ],
        "by_day": daily_histogram(tickets, now, tz),
        "avg_resolution_hours": average_resolution_hours(tickets),
    }


def report_to_csv(report: dict) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["section", "name", "value"])
    for bucket in report["by_status"]:
        writer.writerow(["status", bucket["name"], bucket["value"]])
    for bucket in report["by_department"]:
        writer.writerow(["department", bucket["name"], bucket["value"]])
    for bucket in report["by_day"]:
        writer.writerow(["day", bucket["date"], bucket["tickets"]])
    avg = report["avg_resolution_hours"]
    writer.writerow(["summary", "avg_resolution_hours", "" if avg is None else avg])
    return buffer.getvalue()


async def load_tickets(session: AsyncSession, user_id: int | None = None) -> list[Ticket]:
    query = select(Ticket)
    if user_id is not None:
        query = query.where(Ticket.user_id == user_id)
    result = await session.execute(query)
    return list(result.scalars().all())


async def ticket_report(session: AsyncSession, now: datetime | None = None) -> dict:
    return build_report(await load_tickets(session), now=now)


def dashboard_stats(tickets: Iterable[TicketLike]) -> dict[str, int]:
    tickets = list(tickets)
    counts = status_histogram(tickets)
    return {
        "total": len(tickets),
        "open": counts["open"],
        "in_progress": counts["in_progress"],
        "resolved": counts["resolved"],
    }


def status_chart(tickets: Iterable[TicketLike]) -> list[dict]:
    return [
        {"name": name, "value": value}
        for name, value in status_histogram(tickets).items()
        if value > 0
    ]


async def dashboard_summary(session: AsyncSession, actor: Actor) -> dict:
    """Landing-page figures: staff see every ticket, requesters only their own."""
    scope = None if actor.is_staff else actor.account_id
    tickets = await load_tickets(session, user_id=scope)
    own = tickets if scope is not None else [t for t in tickets if t.user_id == actor.account_id]
    recent = sorted(
        tickets, key=lambda t: (ensure_aware(t.created_at), t.id), reverse=True
    )[: settings.RECENT_TICKETS_LIMIT]
    return {
        "stats": dashboard_stats(tickets),
        "recent": recent,
        "status_chart": status_chart(own),
    }
