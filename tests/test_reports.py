from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from helpdesk.services.reports import (
    average_resolution_hours,
    build_report,
    daily_histogram,
    dashboard_stats,
    department_histogram,
    report_to_csv,
    status_chart,
    status_histogram,
)

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


def _ticket(status="open", department="TI", created_at=NOW, resolved_at=None, user_id=1):
    return SimpleNamespace(
        status=status,
        department=department,
        created_at=created_at,
        resolved_at=resolved_at,
        user_id=user_id,
    )


def test_status_histogram_always_has_four_buckets() -> None:
    counts = status_histogram([_ticket("open"), _ticket("open"), _ticket("closed")])
    assert counts == {"open": 2, "in_progress": 0, "resolved": 0, "closed": 1}


def test_department_histogram_has_one_bucket_per_distinct_value() -> None:
    tickets = [
        _ticket(department="TI"),
        _ticket(department="RH"),
        _ticket(department="TI"),
        _ticket(department="Facilities"),
    ]
    counts = department_histogram(tickets)
    assert len(counts) == len({t.department for t in tickets})
    assert sum(counts.values()) == len(tickets)
    assert counts["TI"] == 2
    assert list(counts) == ["Facilities", "RH", "TI"]


def test_daily_histogram_spans_today_and_six_previous_days() -> None:
    tickets = [
        _ticket(created_at=NOW),
        _ticket(created_at=NOW - timedelta(days=2)),
        _ticket(created_at=NOW - timedelta(days=2, hours=3)),
        _ticket(created_at=NOW - timedelta(days=6)),
        _ticket(created_at=NOW - timedelta(days=7)),
        _ticket(created_at=NOW - timedelta(days=30)),
    ]
    buckets = daily_histogram(tickets, NOW, timezone.utc)
    assert len(buckets) == 7
    assert buckets[0]["date"] == "2026-03-04"
    assert buckets[-1]["date"] == "2026-03-10"
    assert buckets[-1]["label"] == "10/03"
    assert [b["tickets"] for b in buckets] == [1, 0, 0, 0, 2, 0, 1]
    assert sum(b["tickets"] for b in buckets) == 4


def test_daily_histogram_keeps_empty_days() -> None:
    buckets = daily_histogram([], NOW, timezone.utc)
    assert len(buckets) == 7
    assert all(bucket["tickets"] == 0 for bucket in buckets)


def test_daily_histogram_buckets_by_local_calendar_day() -> None:
    tz = timezone(timedelta(hours=-3))
    now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    # 01:30 UTC on the 10th is still the 9th at UTC-3.
    late_evening = _ticket(created_at=datetime(2026, 3, 10, 1, 30, tzinfo=timezone.utc))
    buckets = daily_histogram([late_evening], now, tz)
    by_date = {bucket["date"]: bucket["tickets"] for bucket in buckets}
    assert by_date["2026-03-09"] == 1
    assert by_date["2026-03-10"] == 0


def test_naive_timestamps_are_read_as_utc() -> None:
    naive = _ticket(created_at=datetime(2026, 3, 10, 9, 0))
    buckets = daily_histogram([naive], NOW, timezone.utc)
    assert buckets[-1]["tickets"] == 1


def test_average_resolution_uses_real_timestamps() -> None:
    tickets = [
        _ticket("resolved", created_at=NOW - timedelta(hours=10), resolved_at=NOW),
        _ticket("closed", created_at=NOW - timedelta(hours=30), resolved_at=NOW),
        _ticket("open", created_at=NOW - timedelta(hours=100)),
    ]
    assert average_resolution_hours(tickets) == 20.0


def test_average_resolution_is_none_without_resolved_tickets() -> None:
    assert average_resolution_hours([_ticket("open")]) is None


def test_build_report_totals_match_histograms() -> None:
    tickets = [_ticket("open"), _ticket("in_progress"), _ticket("resolved", resolved_at=NOW)]
    report = build_report(tickets, now=NOW, tz=timezone.utc)
    assert report["totals"] == {
        "total": 3,
        "open": 1,
        "in_progress": 1,
        "resolved": 1,
        "closed": 0,
    }
    assert [bucket["name"] for bucket in report["by_status"]] == [
        "open",
        "in_progress",
        "resolved",
        "closed",
    ]
    assert report["by_department"] == [{"name": "TI", "value": 3}]
    assert report["avg_resolution_hours"] == 0.0


def test_report_csv_lists_every_section() -> None:
    report = build_report([_ticket(department="RH")], now=NOW, tz=timezone.utc)
    lines = report_to_csv(report).strip().splitlines()
    assert lines[0] == "section,name,value"
    assert "department,RH,1" in lines
    assert "day,2026-03-10,1" in lines
    assert lines[-1] == "summary,avg_resolution_hours,"


def test_dashboard_stats_and_chart() -> None:
    tickets = [_ticket("open"), _ticket("open"), _ticket("resolved")]
    assert dashboard_stats(tickets) == {"total": 3, "open": 2, "in_progress": 0, "resolved": 1}
    assert status_chart(tickets) == [
        {"name": "open", "value": 2},
        {"name": "resolved", "value": 1},
    ]
