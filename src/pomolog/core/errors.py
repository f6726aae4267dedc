"""Exception types raised by the timer core and its collaborators."""

from __future__ import annotations


class PomologError(Exception):
    """Base class for all pomolog errors."""


class ConfigurationError(PomologError, ValueError):
    """A duration or session configuration that cannot be run.

    Raised synchronously by the call that introduced the bad value; the
    timer state is left untouched.
    """


class FeedbackValidationError(PomologError, ValueError):
    """Feedback values outside their allowed ranges."""


class SessionStateError(PomologError, RuntimeError):
    """A command was issued in a stage that does not accept it."""

    def __init__(self, command: str, stage: str):
        self.command = command
        self.stage = stage
        super().__init__(f"Cannot {command} while session is in stage '{stage}'")


class PersistenceError(PomologError):
    """Saving or loading a session record failed."""


class MissingIdentityError(PersistenceError):
    """No user is signed in, so the session record cannot be stamped."""

    def __init__(self, message: str = "No current user; session cannot be saved"):
        super().__init__(message)
