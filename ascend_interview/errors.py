"""
Error taxonomy for the interview client.

Setup errors block the session until the user acts. API errors carry the
backend's own message.
"""
from typing import Optional, Tuple


class InterviewError(Exception):
    """Base class for all interview client errors."""


class ApiError(InterviewError):
    """A backend call failed at the transport level or returned non-2xx."""

    def __init__(self, message: str, status: Optional[int] = None, path: str = ""):
        super().__init__(message)
        self.message = message
        self.status = status
        self.path = path

    @property
    def is_transport_failure(self) -> bool:
        return self.status is None

    @property
    def is_server_failure(self) -> bool:
        return self.status is None or self.status >= 500

    def __str__(self) -> str:
        if self.status is None:
            return f"{self.message} ({self.path or 'network'})"
        return f"{self.message} (HTTP {self.status} {self.path})".strip()


class SetupError(InterviewError):
    """Blocking failure while preparing the session."""

    def __init__(self, message: str, actions: Tuple[str, ...] = ("retry", "login", "back")):
        super().__init__(message)
        self.message = message
        self.actions = actions


class TranscriptLockedError(InterviewError):
    """The transcript was edited while speech recognition was running."""
