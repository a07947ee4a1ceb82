"""Scoring of submitted answers."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from quizdesk.constants.quiz_constants import MAX_SCORE, NO_ANSWER
from quizdesk.core.errors import InvariantViolation
from quizdesk.core.models import GradeResult, Question, QuestionOutcome
from quizdesk.core.questions import is_correct


def grade(questions: Sequence[Question], answers: Mapping[int, int]) -> GradeResult:
    """Score ``answers`` (question id -> option index) against ``questions``.

    Every question is worth the same; the percentage is rounded half up.
    """
    total = len(questions)
    if total == 0:
        raise InvariantViolation("Cannot grade a quiz without questions.")

    outcomes: list[QuestionOutcome] = []
    correct_count = 0
    for question in questions:
        selected = answers.get(question.id, NO_ANSWER)
        correct = is_correct(question, selected)
        if correct:
            correct_count += 1
        outcomes.append(
            QuestionOutcome(question_id=question.id, selected_index=selected, is_correct=correct)
        )

    return GradeResult(
        correct_count=correct_count,
        total=total,
        score=percentage(correct_count, total),
        outcomes=tuple(outcomes),
    )


def percentage(correct_count: int, total: int) -> int:
    """Integer percentage of ``correct_count`` out of ``total`` with round-half-up."""
    if total <= 0:
        raise InvariantViolation("Percentage needs a positive total.")
    # (2 * 100 * c + t) // (2 * t) == floor(100 * c / t + 0.5), exact in integers.
    return (2 * MAX_SCORE * correct_count + total) // (2 * total)
