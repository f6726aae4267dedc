"""Value types for timer configuration, snapshots and session feedback."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pomolog.core.errors import ConfigurationError, FeedbackValidationError

PRODUCTIVITY_MIN = 1
PRODUCTIVITY_MAX = 10
SATISFACTION_MIN = -10
SATISFACTION_MAX = 10

# prod_level at or above this counts as a productive session
PRODUCTIVE_THRESHOLD = 7


class EnginePhase(Enum):
    """Phase the countdown engine is in."""
    SETUP = "setup"
    FOCUS = "focus"
    BREAK = "break"


class SessionStage(Enum):
    """Session-level stage layered on top of the engine phase."""
    SETUP = "setup"
    FOCUS = "focus"
    FOCUS_FEEDBACK = "focus_feedback"
    BREAK = "break"
    BREAK_FEEDBACK = "break_feedback"
    SESSION_END = "session_end"


def format_clock(total_seconds: int) -> str:
    """Format seconds as MM:SS, clamping negatives to zero."""
    minutes, seconds = divmod(max(0, int(total_seconds)), 60)
    return f"{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class TimerConfiguration:
    """User-chosen session lengths, fixed for the lifetime of a run."""
    total_session_minutes: int
    focus_minutes: int

    @property
    def break_minutes(self) -> int:
        return self.total_session_minutes - self.focus_minutes

    @property
    def focus_seconds(self) -> int:
        return self.focus_minutes * 60

    @property
    def break_seconds(self) -> int:
        return self.break_minutes * 60

    def validate(self) -> None:
        """Raise ConfigurationError unless both phases can actually run."""
        for name in ("total_session_minutes", "focus_minutes"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be a whole number of minutes")

        if self.total_session_minutes <= 0:
            raise ConfigurationError(
                "Please enter a session duration greater than 0 minutes."
            )
        if self.focus_minutes <= 0:
            raise ConfigurationError("Focus time must be at least 1 minute.")
        if self.focus_minutes > self.total_session_minutes:
            raise ConfigurationError(
                f"Focus time ({self.focus_minutes} min) cannot exceed the total "
                f"session ({self.total_session_minutes} min)."
            )
        if self.break_minutes <= 0:
            raise ConfigurationError(
                "Focus time must leave at least 1 minute for the break."
            )

    def to_dict(self) -> dict[str, int]:
        return {
            "total_session_minutes": self.total_session_minutes,
            "focus_minutes": self.focus_minutes,
            "break_minutes": self.break_minutes,
        }


@dataclass(frozen=True)
class TimerSnapshot:
    """Read-only view of the engine for rendering a countdown and progress bar."""
    phase: EnginePhase
    time_left_seconds: int
    total_phase_seconds: int
    is_running: bool
    is_paused: bool

    @property
    def time_left_display(self) -> str:
        """Format time remaining as MM:SS."""
        return format_clock(self.time_left_seconds)

    @property
    def progress_fraction(self) -> float:
        """Elapsed share of the current phase (0.0-1.0)."""
        if self.total_phase_seconds <= 0:
            return 0.0
        elapsed = self.total_phase_seconds - self.time_left_seconds
        return min(1.0, max(0.0, elapsed / self.total_phase_seconds))

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "time_left_seconds": self.time_left_seconds,
            "total_phase_seconds": self.total_phase_seconds,
            "is_running": self.is_running,
            "is_paused": self.is_paused,
            "time_left_display": self.time_left_display,
            "progress_fraction": round(self.progress_fraction, 4),
        }


@dataclass(frozen=True)
class Mood:
    """Position on the mood grid.

    x runs from sad (0) to happy (1), y from irritated (0) to calm (1).
    """
    x: float
    y: float

    def __post_init__(self) -> None:
        for axis, value in (("x", self.x), ("y", self.y)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise FeedbackValidationError(f"mood {axis} must be a number")
            if not 0.0 <= value <= 1.0:
                raise FeedbackValidationError(f"mood {axis} must be between 0 and 1, got {value}")

    @property
    def color(self) -> str:
        """Blend of the x gradient (blue to yellow) and y gradient (magenta to green)."""
        x_rgb = (round(255 * self.x), round(255 * self.x), round(255 * (1 - self.x)))
        y_rgb = (round(255 * (1 - self.y)), round(255 * self.y), round(255 * (1 - self.y)))
        r, g, b = (round((p + q) / 2) for p, q in zip(x_rgb, y_rgb))
        return f"rgb({r},{g},{b})"


def validate_productivity(level: int) -> int:
    if isinstance(level, bool) or not isinstance(level, int):
        raise FeedbackValidationError("productivity level must be a whole number")
    if not PRODUCTIVITY_MIN <= level <= PRODUCTIVITY_MAX:
        raise FeedbackValidationError(
            f"productivity level must be between {PRODUCTIVITY_MIN} and {PRODUCTIVITY_MAX}, got {level}"
        )
    return level


def validate_satisfaction(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise FeedbackValidationError("break satisfaction must be a whole number")
    if not SATISFACTION_MIN <= value <= SATISFACTION_MAX:
        raise FeedbackValidationError(
            f"break satisfaction must be between {SATISFACTION_MIN} and {SATISFACTION_MAX}, got {value}"
        )
    return value


def productivity_label(level: int) -> str:
    if level >= PRODUCTIVE_THRESHOLD:
        return "High"
    if level >= 5:
        return "Medium"
    return "Low"


def satisfaction_label(value: int) -> str:
    if value < 0:
        return "too short"
    if value > 0:
        return "too long"
    return "just right"


@dataclass
class FeedbackRecord:
    """Feedback gathered between phases of one session."""
    mood: Mood | None = None
    productivity_level: int | None = None
    break_activity: str | None = None
    break_satisfaction: int | None = None

    @property
    def focus_complete(self) -> bool:
        return self.mood is not None and self.productivity_level is not None

    @property
    def is_complete(self) -> bool:
        return self.focus_complete and self.break_satisfaction is not None


@dataclass
class SessionRecord:
    """Payload handed to the session store once a session finishes."""
    user_id: str
    session_minutes: int
    focus_minutes: int
    prod_level: int
    mood_x: float
    mood_y: float
    break_satisfaction: int
    break_activity: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: int | str | None = None

    @classmethod
    def build(
        cls,
        user_id: str,
        config: TimerConfiguration,
        feedback: FeedbackRecord,
    ) -> SessionRecord:
        """Assemble a record from a finished session."""
        if not feedback.is_complete or feedback.mood is None:
            raise ValueError("feedback record is incomplete")
        return cls(
            user_id=user_id,
            session_minutes=config.total_session_minutes,
            focus_minutes=config.focus_minutes,
            prod_level=feedback.productivity_level,
            mood_x=feedback.mood.x,
            mood_y=feedback.mood.y,
            break_activity=feedback.break_activity,
            break_satisfaction=feedback.break_satisfaction,
        )

    @property
    def is_productive(self) -> bool:
        return self.prod_level >= PRODUCTIVE_THRESHOLD

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage (without the id)."""
        return {
            "user_id": self.user_id,
            "session_minutes": self.session_minutes,
            "focus_minutes": self.focus_minutes,
            "prod_level": self.prod_level,
            "mood_x": self.mood_x,
            "mood_y": self.mood_y,
            "break_activity": self.break_activity,
            "break_satisfaction": self.break_satisfaction,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> SessionRecord:
        """Create from a database row or REST response object."""
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        elif isinstance(created_at, datetime):
            created = created_at
        else:
            created = datetime.now(timezone.utc)
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)

        return cls(
            id=row.get("id"),
            user_id=row.get("user_id", ""),
            session_minutes=int(row.get("session_minutes", 0)),
            focus_minutes=int(row.get("focus_minutes", 0)),
            prod_level=int(row.get("prod_level", PRODUCTIVITY_MIN)),
            mood_x=float(row.get("mood_x", 0.0)),
            mood_y=float(row.get("mood_y", 0.0)),
            break_activity=row.get("break_activity"),
            break_satisfaction=int(row.get("break_satisfaction", 0)),
            created_at=created,
        )
