"""Summaries computed from saved sessions."""

from pomolog.summarizers.session_stats import DailyTotal, SessionStats, compute_session_stats

__all__ = ["DailyTotal", "SessionStats", "compute_session_stats"]
