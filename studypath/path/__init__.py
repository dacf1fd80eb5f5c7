"""
Learning path engine.

Components:
- models: Session / Module / SubModule / Lesson / Exercise
- grading: Pure exercise grading
- progression: Locking state machine (locked -> unlocked -> completed)
- generator: Gemini content generator client
- repository: Session snapshot stores
- orchestrator: Public session operations
"""

from .grading import GradeResult, grade
from .models import (
    ChatMessage,
    ChatRole,
    ChoiceExercise,
    Exercise,
    Lesson,
    Module,
    ModuleProgress,
    OpenExercise,
    Session,
    SessionSummary,
    Status,
    SubModule,
)
from .orchestrator import SessionOrchestrator
from .repository import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionRepository,
    SqlSessionStore,
    create_store,
)

__all__ = [
    "ChatMessage",
    "ChatRole",
    "ChoiceExercise",
    "Exercise",
    "GradeResult",
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "Lesson",
    "Module",
    "ModuleProgress",
    "OpenExercise",
    "Session",
    "SessionOrchestrator",
    "SessionRepository",
    "SessionSummary",
    "SqlSessionStore",
    "Status",
    "SubModule",
    "create_store",
    "grade",
]
