"""
Learning Path Progression.

Owns the locking rules for modules and sub-modules:

    locked -> unlocked -> completed

Transitions are forward-only. A completed unit stays completed no matter what
is submitted later; only the recorded answers change.

Every function takes a session snapshot and returns a new one. The input is
never mutated, so a rejected transition leaves the caller's state untouched.
Calls to the content generator happen in the orchestrator; this module only
decides what needs generating and merges what came back.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from loguru import logger

from studypath.core.errors import GenerationFailed, InvalidTransition
from studypath.path.grading import grade
from studypath.path.models import (
    STATUS_RANK,
    ChatMessage,
    Exercise,
    Module,
    ModuleProgress,
    Session,
    Status,
    SubModule,
)


@dataclass(frozen=True)
class SubmissionOutcome:
    """Result of applying one graded submission to a session."""

    session: Session
    module_id: str
    sub_module_id: str
    all_correct: bool
    # True only when this submission moved the module to completed
    module_completed: bool
    # Successor that still needs content, if any
    next_module_id: str | None


def advance(current: Status, target: Status) -> Status:
    """Move a status forward; never regress."""
    if STATUS_RANK[target] > STATUS_RANK[current]:
        return target
    return current


def _open_first_sub_module(sub_modules: Sequence[SubModule]) -> None:
    """Unlock the first sub-module and lock the rest, in place."""
    for index, sub in enumerate(sub_modules):
        sub.status = Status.UNLOCKED if index == 0 else Status.LOCKED


# =============================================================================
# Bootstrap
# =============================================================================


def normalize_initial_path(modules: Sequence[Module]) -> list[Module]:
    """
    Apply the gating policy to a freshly generated path.

    The first module and its first sub-module are unlocked. Every later module
    is locked with its sub-modules cleared: locked modules never carry
    materialized content, whatever the generator returned.
    """
    normalized = [module.model_copy(deep=True) for module in modules]

    for index, module in enumerate(normalized):
        if index == 0:
            module.status = Status.UNLOCKED
            _open_first_sub_module(module.sub_modules)
        else:
            module.status = Status.LOCKED
            module.sub_modules = []

    return normalized


def bootstrap(session: Session, modules: Sequence[Module]) -> Session:
    """Install a generated path on a session that has none yet."""
    if session.modules:
        raise InvalidTransition(f"Session {session.id} already has a learning path")
    if not modules:
        raise GenerationFailed("generator returned no modules")

    return session.model_copy(update={"modules": normalize_initial_path(modules)}, deep=True)


# =============================================================================
# Selection & submission
# =============================================================================


def _locate(session: Session, sub_module_id: str) -> tuple[Module, SubModule]:
    found = session.find_sub_module(sub_module_id)
    if found is None:
        raise InvalidTransition(f"Sub-module {sub_module_id} does not belong to session {session.id}")
    return found


def select_sub_module(session: Session, sub_module_id: str) -> SubModule:
    """Return a copy of the sub-module if the learner may open it."""
    _, sub = _locate(session, sub_module_id)
    if sub.status == Status.LOCKED:
        raise InvalidTransition(f"Sub-module {sub_module_id} is locked")
    return sub.model_copy(deep=True)


def _unlock_following_sub_module(module: Module, sub_module_id: str) -> None:
    ids = [sub.id for sub in module.sub_modules]
    position = ids.index(sub_module_id)
    if position + 1 < len(module.sub_modules):
        following = module.sub_modules[position + 1]
        following.status = advance(following.status, Status.UNLOCKED)


def next_module_to_unlock(session: Session, module_id: str) -> Module | None:
    """
    Return the successor of a completed module if it still needs content.

    None when the module is not completed, is the last one, or its successor
    was already unlocked.
    """
    index = session.module_index(module_id)
    if index < 0 or session.modules[index].status != Status.COMPLETED:
        return None
    if index + 1 >= len(session.modules):
        return None

    successor = session.modules[index + 1]
    if successor.status != Status.LOCKED:
        return None
    return successor


def apply_submission(
    session: Session,
    sub_module_id: str,
    answers: Mapping[str, str],
) -> SubmissionOutcome:
    """
    Grade a submission and advance statuses.

    1. Grade and write the graded exercises back into the sub-module.
    2. All correct: the sub-module completes and the next sub-module in the
       same module unlocks. Otherwise the status is left as it was.
    3. All sub-modules completed: the module completes.
    4. Report the successor module that needs content, if any.
    """
    updated = session.model_copy(deep=True)
    module, sub = _locate(updated, sub_module_id)

    if sub.status == Status.LOCKED:
        raise InvalidTransition(f"Sub-module {sub_module_id} is locked")

    result = grade(sub.exercises, answers)
    sub.exercises = result.exercises
    updated.answer_scratchpad.update({e.id: answers[e.id] for e in sub.exercises if e.id in answers})

    if result.all_correct:
        sub.status = advance(sub.status, Status.COMPLETED)
        _unlock_following_sub_module(module, sub_module_id)

    module_completed = False
    if (
        module.sub_modules
        and module.status != Status.COMPLETED
        and all(s.status == Status.COMPLETED for s in module.sub_modules)
    ):
        module.status = advance(module.status, Status.COMPLETED)
        module_completed = True
        logger.info(f"Module {module.id} completed in session {updated.id}")

    successor = next_module_to_unlock(updated, module.id)

    return SubmissionOutcome(
        session=updated,
        module_id=module.id,
        sub_module_id=sub_module_id,
        all_correct=result.all_correct,
        module_completed=module_completed,
        next_module_id=successor.id if successor else None,
    )


# =============================================================================
# Materialization
# =============================================================================


def unlock_module(
    session: Session,
    module_id: str,
    sub_modules: Sequence[SubModule],
) -> tuple[Session, bool]:
    """
    Materialize a locked module with generated sub-modules.

    Returns (session, merged). merged is False when the module is no longer
    locked and empty, e.g. a late result for a module another call already
    unlocked; the session is then returned unchanged.
    """
    index = session.module_index(module_id)
    if index < 0:
        raise InvalidTransition(f"Module {module_id} does not belong to session {session.id}")
    if index > 0 and session.modules[index - 1].status != Status.COMPLETED:
        raise InvalidTransition(f"Module {module_id} cannot unlock before its predecessor completes")

    target = session.modules[index]
    if target.status != Status.LOCKED or target.sub_modules:
        return session.model_copy(deep=True), False

    updated = session.model_copy(deep=True)
    module = updated.modules[index]
    materialized = [sub.model_copy(deep=True) for sub in sub_modules]
    _open_first_sub_module(materialized)
    module.sub_modules = materialized
    module.status = advance(module.status, Status.UNLOCKED)
    return updated, True


def populate_exercises(
    session: Session,
    sub_module_id: str,
    exercises: Sequence[Exercise],
) -> tuple[Session, bool]:
    """Fill an empty exercise list. merged is False if it is no longer empty."""
    _, sub = _locate(session, sub_module_id)
    if sub.status == Status.LOCKED:
        raise InvalidTransition(f"Sub-module {sub_module_id} is locked")
    if sub.exercises:
        return session.model_copy(deep=True), False

    updated = session.model_copy(deep=True)
    _, target = _locate(updated, sub_module_id)
    target.exercises = [exercise.model_copy(deep=True) for exercise in exercises]
    return updated, True


# =============================================================================
# Scratchpad, chat, views
# =============================================================================


def record_answer(session: Session, exercise_id: str, value: str) -> Session:
    """Store a draft answer for one exercise of an open sub-module."""
    for module in session.modules:
        for sub in module.sub_modules:
            if any(exercise.id == exercise_id for exercise in sub.exercises):
                if sub.status == Status.LOCKED:
                    raise InvalidTransition(f"Exercise {exercise_id} belongs to a locked sub-module")
                updated = session.model_copy(deep=True)
                updated.answer_scratchpad[exercise_id] = value
                return updated

    raise InvalidTransition(f"Exercise {exercise_id} does not belong to session {session.id}")


def append_chat(session: Session, message: ChatMessage) -> Session:
    updated = session.model_copy(deep=True)
    updated.chat_history.append(message.model_copy())
    return updated


def module_progress(session: Session) -> list[ModuleProgress]:
    return [
        ModuleProgress(
            module_id=module.id,
            title=module.title,
            status=module.status,
            completed_sub_modules=sum(1 for s in module.sub_modules if s.status == Status.COMPLETED),
            total_sub_modules=len(module.sub_modules),
        )
        for module in session.modules
    ]
