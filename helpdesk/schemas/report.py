from __future__ import annotations

from pydantic import BaseModel


class Bucket(BaseModel):
    name: str
    value: int


class DailyBucket(BaseModel):
    date: str
    label: str
    tickets: int


class TicketTotals(BaseModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    closed: int = 0


class ReportOut(BaseModel):
    totals: TicketTotals
    by_status: list[Bucket]
    by_department: list[Bucket]
    by_day: list[DailyBucket]
    avg_resolution_hours: float | None = None


class DashboardStats(BaseModel):
    total: int
    open: int
    in_progress: int
    resolved: int
