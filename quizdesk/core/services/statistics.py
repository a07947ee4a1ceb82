"""Read-only statistics derived from completed attempts."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from quizdesk.core.models import (
    Attempt,
    QuizStatistics,
    StudentAttemptSummary,
    StudentOverview,
    TeacherOverview,
)


@dataclass(slots=True)
class _QuizEntry:
    """Mutable accumulator used while reducing one quiz's attempts."""

    quiz_id: int
    score_total: int = 0
    attempt_count: int = 0
    students: set[str] = field(default_factory=set)
    first: datetime | None = None
    last: datetime | None = None


@dataclass(slots=True)
class _StudentEntry:
    """Mutable accumulator for one (quiz, student) pair."""

    quiz_id: int
    student_id: str
    attempt_count: int = 0
    best: Attempt | None = None
    first: datetime | None = None
    last: datetime | None = None


def quiz_statistics(quiz_ids: Iterable[int], attempts: Iterable[Attempt]) -> list[QuizStatistics]:
    """Summarize completed attempts per quiz.

    Every quiz in ``quiz_ids`` gets a row, with zeros when nobody completed it.
    """
    entries = {quiz_id: _QuizEntry(quiz_id=quiz_id) for quiz_id in quiz_ids}
    for attempt in _completed(attempts):
        entry = entries.get(attempt.quiz_id)
        if entry is None:
            continue
        entry.attempt_count += 1
        entry.score_total += attempt.score or 0
        entry.students.add(attempt.student_id)
        entry.first = _earliest(entry.first, attempt.completed_at)
        entry.last = _latest(entry.last, attempt.completed_at)

    return [
        QuizStatistics(
            quiz_id=entry.quiz_id,
            total_students=len(entry.students),
            average_score=entry.score_total / entry.attempt_count if entry.attempt_count else 0,
            total_attempts=entry.attempt_count,
            first_attempt_date=entry.first,
            last_attempt_date=entry.last,
        )
        for entry in sorted(entries.values(), key=lambda e: e.quiz_id)
    ]


def student_summaries(
    attempts: Iterable[Attempt],
    student_names: Mapping[str, str] | None = None,
) -> list[StudentAttemptSummary]:
    """Summarize completed attempts per (quiz, student).

    When several attempts share the highest score, the one completed first is
    the best attempt, then the one with the smaller id.
    """
    names = student_names or {}
    entries: dict[tuple[int, str], _StudentEntry] = {}
    for attempt in _completed(attempts):
        key = (attempt.quiz_id, attempt.student_id)
        entry = entries.get(key)
        if entry is None:
            entry = _StudentEntry(quiz_id=attempt.quiz_id, student_id=attempt.student_id)
            entries[key] = entry
        entry.attempt_count += 1
        if entry.best is None or _rank(attempt) < _rank(entry.best):
            entry.best = attempt
        entry.first = _earliest(entry.first, attempt.completed_at)
        entry.last = _latest(entry.last, attempt.completed_at)

    return [
        StudentAttemptSummary(
            quiz_id=entry.quiz_id,
            student_id=entry.student_id,
            student_name=names.get(entry.student_id) or entry.student_id,
            attempt_count=entry.attempt_count,
            highest_score=entry.best.score or 0,
            best_attempt_id=entry.best.id,
            first_attempt=entry.first,
            last_attempt=entry.last,
        )
        for key, entry in sorted(entries.items())
    ]


def teacher_overview(statistics: Iterable[QuizStatistics]) -> TeacherOverview:
    """Totals across a teacher's quizzes.

    The average is the mean of the per-quiz averages over every quiz, so a
    quiz nobody has taken yet counts as 0.
    """
    rows = list(statistics)
    average = sum(row.average_score for row in rows) / len(rows) if rows else 0
    return TeacherOverview(
        total_students=sum(row.total_students for row in rows),
        average_score=average,
        total_attempts=sum(row.total_attempts for row in rows),
    )


def student_overview(attempts: Iterable[Attempt]) -> StudentOverview:
    scores = [attempt.score or 0 for attempt in _completed(attempts)]
    return StudentOverview(
        completed_attempts=len(scores),
        average_score=sum(scores) / len(scores) if scores else 0,
        best_score=max(scores, default=0),
    )


def _completed(attempts: Iterable[Attempt]) -> Iterable[Attempt]:
    return (attempt for attempt in attempts if attempt.completed)


def _rank(attempt: Attempt) -> tuple[int, bool, datetime | None, int]:
    # Lower ranks first: higher score, then known completion time, then earlier time, then id.
    completed_at = attempt.completed_at
    return (
        -(attempt.score or 0),
        completed_at is None,
        completed_at if completed_at is not None else datetime.max,
        attempt.id,
    )


def _earliest(current: datetime | None, candidate: datetime | None) -> datetime | None:
    if candidate is None:
        return current
    if current is None or candidate < current:
        return candidate
    return current


def _latest(current: datetime | None, candidate: datetime | None) -> datetime | None:
    if candidate is None:
        return current
    if current is None or candidate > current:
        return candidate
    return current
