"""
Learning Path Domain Models.

Pydantic models for one learner's session:
- Session: root aggregate (topic, module tree, chat transcript, scratchpad)
- Module / SubModule: gated units with a locked -> unlocked -> completed status
- Lesson: immutable reading content
- Exercise: ChoiceExercise | OpenExercise, discriminated by ``kind``

Attributes are snake_case in Python and camelCase on the wire
(``subModules``, ``correctAnswer``, ``chatHistory``), which is the shape the
generator returns and the shape stored documents keep.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Status(str, Enum):
    """Progression status shared by modules and sub-modules."""

    LOCKED = "locked"
    UNLOCKED = "unlocked"
    COMPLETED = "completed"


# Forward-only ordering used by the state machine
STATUS_RANK = {Status.LOCKED: 0, Status.UNLOCKED: 1, Status.COMPLETED: 2}


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class PathModel(BaseModel):
    """Base model: camelCase aliases, population by field name allowed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Lesson(PathModel):
    id: str
    title: str
    content: str = ""


class ExerciseBase(PathModel):
    """Fields shared by both exercise shapes."""

    id: str
    question: str
    correct_answer: str

    # Both None until the first grading pass, then both set
    user_answer: str | None = None
    is_correct: bool | None = None

    @property
    def graded(self) -> bool:
        return self.is_correct is not None


class ChoiceExercise(ExerciseBase):
    """Multiple-choice question."""

    kind: Literal["choice"] = "choice"
    options: list[str] = Field(default_factory=list)


class OpenExercise(ExerciseBase):
    """Free-text question with a single expected answer."""

    kind: Literal["open"] = "open"


Exercise = Annotated[Union[ChoiceExercise, OpenExercise], Field(discriminator="kind")]


def tag_exercise(raw: Any) -> Any:
    """Add the ``kind`` tag to an untagged generator payload.

    Generator output distinguishes the two shapes only by a non-empty
    ``options`` list; everything past the boundary relies on the explicit tag.
    """
    if isinstance(raw, dict) and "kind" not in raw:
        return {**raw, "kind": "choice" if raw.get("options") else "open"}
    return raw


class SubModule(PathModel):
    id: str
    title: str
    content: str = ""
    lessons: list[Lesson] = Field(default_factory=list)
    exercises: list[Exercise] = Field(default_factory=list)
    status: Status = Status.LOCKED

    @field_validator("exercises", mode="before")
    @classmethod
    def _tag_exercises(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [tag_exercise(item) for item in value]
        return value


class Module(PathModel):
    id: str
    title: str
    description: str = ""
    status: Status = Status.LOCKED
    # Empty means "not yet materialized"
    sub_modules: list[SubModule] = Field(default_factory=list)

    def get_sub_module(self, sub_module_id: str) -> SubModule | None:
        for sub in self.sub_modules:
            if sub.id == sub_module_id:
                return sub
        return None


class ChatMessage(PathModel):
    role: ChatRole
    text: str


class Session(PathModel):
    """One learner's full state for a single topic."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, frozen=True)
    topic: str = Field(frozen=True)
    modules: list[Module] = Field(default_factory=list)
    chat_history: list[ChatMessage] = Field(default_factory=list)
    answer_scratchpad: dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    last_accessed: datetime = Field(default_factory=utcnow)
    # Incremented by every store write
    revision: int = 0

    def find_sub_module(self, sub_module_id: str) -> tuple[Module, SubModule] | None:
        """Locate a sub-module and its owning module."""
        for module in self.modules:
            sub = module.get_sub_module(sub_module_id)
            if sub is not None:
                return module, sub
        return None

    def get_module(self, module_id: str) -> Module | None:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None

    def module_index(self, module_id: str) -> int:
        for index, module in enumerate(self.modules):
            if module.id == module_id:
                return index
        return -1

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase JSON document used by stores and the API."""
        return self.model_dump(mode="json", by_alias=True)


class ModuleProgress(PathModel):
    """Completion summary for one module."""

    module_id: str
    title: str
    status: Status
    completed_sub_modules: int
    total_sub_modules: int

    @computed_field
    @property
    def percent(self) -> float:
        if self.total_sub_modules == 0:
            return 0.0
        return 100.0 * self.completed_sub_modules / self.total_sub_modules


class SessionSummary(PathModel):
    """Row used when listing stored sessions."""

    id: str
    topic: str
    last_accessed: datetime
    completed_modules: int
    total_modules: int

    @classmethod
    def from_session(cls, session: Session) -> SessionSummary:
        return cls(
            id=session.id,
            topic=session.topic,
            last_accessed=session.last_accessed,
            completed_modules=sum(1 for m in session.modules if m.status == Status.COMPLETED),
            total_modules=len(session.modules),
        )
