"""pomolog - Pomodoro focus sessions with mood and productivity feedback."""

__version__ = "0.1.0"
