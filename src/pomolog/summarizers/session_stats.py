"""Weekly and all-time summaries over saved session records."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

from pomolog.timer.models import SessionRecord

logger = logging.getLogger(__name__)


@dataclass
class DailyTotal:
    """Session minutes recorded on one calendar day."""

    day: date
    minutes: int

    @property
    def weekday(self) -> str:
        return self.day.strftime("%a")

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.day.isoformat(), "weekday": self.weekday, "minutes": self.minutes}


@dataclass
class SessionStats:
    """Summary of a user's sessions over a recent window and overall."""

    days: int
    window_minutes: int = 0
    window_sessions: int = 0
    productive_percent: int = 0
    average_daily_minutes: int = 0
    average_productivity: float = 0.0
    average_break_satisfaction: float = 0.0
    daily_totals: list[DailyTotal] = field(default_factory=list)
    total_sessions: int = 0
    average_session_minutes: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "days": self.days,
            "window_minutes": self.window_minutes,
            "window_sessions": self.window_sessions,
            "productive_percent": self.productive_percent,
            "average_daily_minutes": self.average_daily_minutes,
            "average_productivity": self.average_productivity,
            "average_break_satisfaction": self.average_break_satisfaction,
            "daily_totals": [d.to_dict() for d in self.daily_totals],
            "total_sessions": self.total_sessions,
            "average_session_minutes": self.average_session_minutes,
        }


def _day_of(record: SessionRecord, now: datetime) -> date:
    return record.created_at.astimezone(now.tzinfo).date()


def compute_session_stats(
    records: Iterable[SessionRecord],
    now: datetime | None = None,
    days: int = 7,
) -> SessionStats:
    """Summarize sessions over the last ``days`` calendar days, today included.

    Productive sessions are those rated 7 or higher. The daily average is
    taken over days that actually had a session, and ``daily_totals`` lists
    every day in the window, oldest first, including empty ones.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    all_records = list(records)
    today = now.date()
    first_day = today - timedelta(days=days - 1)
    recent = [r for r in all_records if first_day <= _day_of(r, now) <= today]

    stats = SessionStats(days=days, total_sessions=len(all_records))

    if all_records:
        stats.average_session_minutes = round(
            sum(r.session_minutes for r in all_records) / len(all_records)
        )

    # Every day in the window, including empty ones
    totals: dict[date, int] = {today - timedelta(days=i): 0 for i in range(days)}
    for record in recent:
        totals[_day_of(record, now)] += record.session_minutes
    stats.daily_totals = [DailyTotal(day=d, minutes=m) for d, m in sorted(totals.items())]

    if not recent:
        return stats

    stats.window_sessions = len(recent)
    stats.window_minutes = sum(r.session_minutes for r in recent)

    productive = sum(1 for r in recent if r.is_productive)
    stats.productive_percent = round(productive / len(recent) * 100)

    active_days = {_day_of(r, now) for r in recent}
    stats.average_daily_minutes = round(stats.window_minutes / len(active_days))

    stats.average_productivity = round(sum(r.prod_level for r in recent) / len(recent), 1)
    stats.average_break_satisfaction = round(
        sum(r.break_satisfaction for r in recent) / len(recent), 1
    )

    logger.debug(
        f"Stats over {days}d: {stats.window_sessions} sessions, {stats.window_minutes} min"
    )
    return stats
