"""
Typed failures raised by the progression engine.

Every error here is recoverable at the call boundary. Errors that happen
after progress was made carry the resulting session snapshot so callers
can show it (or retry persisting it) without re-grading.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from studypath.path.models import Session


class StudyPathError(Exception):
    """Base class for engine errors."""


class GenerationFailed(StudyPathError):
    """The content generator errored or returned nothing usable."""

    def __init__(self, cause: str, session: Session | None = None):
        super().__init__(f"Content generation failed: {cause}")
        self.cause = cause
        # Set when progress was committed before the failing call
        self.session = session


class SessionNotFound(StudyPathError):
    """No session is stored under the requested id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidTransition(StudyPathError):
    """The requested operation is not allowed in the current state."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class PersistenceFailed(StudyPathError):
    """Writing (or reading) a session snapshot failed."""

    def __init__(self, cause: str, session: Session | None = None):
        super().__init__(f"Session persistence failed: {cause}")
        self.cause = cause
        # The unpersisted in-memory result, for a later save retry
        self.session = session
