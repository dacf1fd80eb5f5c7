"""
Exercise grading.

Pure functions: same inputs, same outputs, no I/O. A submission is never
rejected; exercises without an answer are graded incorrect.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from studypath.path.models import ChoiceExercise, Exercise, OpenExercise


@dataclass(frozen=True)
class GradeResult:
    """Graded copies of the exercises plus the aggregate verdict."""

    exercises: list[Exercise]
    all_correct: bool

    @property
    def correct_count(self) -> int:
        return sum(1 for exercise in self.exercises if exercise.is_correct)


def normalize_answer(value: str) -> str:
    """Trim and case-fold. No other normalization is applied."""
    return value.strip().casefold()


def is_answer_correct(exercise: Exercise, answer: str | None) -> bool:
    """Compare one submitted answer against the exercise key."""
    if answer is None:
        return False

    match exercise:
        case ChoiceExercise():
            # The submitted value is the option text, not its index
            return normalize_answer(answer) == normalize_answer(exercise.correct_answer)
        case OpenExercise():
            return normalize_answer(answer) == normalize_answer(exercise.correct_answer)
        case _:
            raise TypeError(f"Unknown exercise kind: {type(exercise).__name__}")


def grade(exercises: Sequence[Exercise], answers: Mapping[str, str]) -> GradeResult:
    """
    Grade a sub-module's exercises against submitted answers.

    Args:
        exercises: The sub-module's exercises, in order
        answers: Exercise id -> raw submitted answer

    Returns:
        GradeResult with every exercise carrying user_answer and is_correct.
        all_correct is vacuously True for an empty exercise list.
    """
    graded: list[Exercise] = []
    for exercise in exercises:
        answer = answers.get(exercise.id)
        graded.append(
            exercise.model_copy(
                update={
                    "user_answer": answer if answer is not None else "",
                    "is_correct": is_answer_correct(exercise, answer),
                }
            )
        )

    return GradeResult(
        exercises=graded,
        all_correct=all(exercise.is_correct for exercise in graded),
    )


def score(exercises: Sequence[Exercise]) -> tuple[int, int]:
    """Return (correct, total) from the last recorded grading pass."""
    return sum(1 for exercise in exercises if exercise.is_correct), len(exercises)
