"""
Core Module - Shared errors and logging setup.

Components:
- errors: Typed failures raised at the engine boundary
- logging: loguru sink configuration
"""

from studypath.core.errors import (
    GenerationFailed,
    InvalidTransition,
    PersistenceFailed,
    SessionNotFound,
    StudyPathError,
)
from studypath.core.logging import configure_logging

__all__ = [
    "StudyPathError",
    "GenerationFailed",
    "SessionNotFound",
    "InvalidTransition",
    "PersistenceFailed",
    "configure_logging",
]
