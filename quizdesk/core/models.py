"""Domain models for the quiz platform."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar

from quizdesk.constants.quiz_constants import TRUE_FALSE_OPTIONS


class Role(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"


class AttemptStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class Identity:
    """Signed-in user. Replaced, never mutated, when settings change."""

    id: str
    role: Role
    display_name: str = ""

    @property
    def is_teacher(self) -> bool:
        return self.role is Role.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role is Role.STUDENT


@dataclass(frozen=True, slots=True)
class MultipleChoiceQuestion:
    """Question with several text options and one correct index."""

    question_type: ClassVar[QuestionType] = QuestionType.MULTIPLE_CHOICE

    id: int | None
    text: str
    options: tuple[str, ...]
    correct_answer: int


@dataclass(frozen=True, slots=True)
class TrueFalseQuestion:
    """Question answered with True (index 0) or False (index 1)."""

    question_type: ClassVar[QuestionType] = QuestionType.TRUE_FALSE

    id: int | None
    text: str
    correct_answer: int

    @property
    def options(self) -> tuple[str, ...]:
        return TRUE_FALSE_OPTIONS


@dataclass(frozen=True, slots=True)
class FillBlankQuestion:
    """Question whose prompt holds a blank marker and whose answer is typed text."""

    question_type: ClassVar[QuestionType] = QuestionType.FILL_BLANK

    id: int | None
    text: str
    accepted_answer: str

    @property
    def options(self) -> tuple[str, ...]:
        return (self.accepted_answer,)


Question = MultipleChoiceQuestion | TrueFalseQuestion | FillBlankQuestion


@dataclass(frozen=True, slots=True)
class Quiz:
    """Quiz owned by one teacher, with its questions in display order."""

    id: int
    title: str
    created_by: str
    questions: tuple[Question, ...]
    created_at: datetime | None = None

    def question_ids(self) -> list[int]:
        return [question.id for question in self.questions if question.id is not None]

    def find_question(self, question_id: int) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)


@dataclass(slots=True)
class Attempt:
    """One student's pass through one quiz, as read from storage."""

    id: int
    quiz_id: int
    student_id: str
    answers: dict[int, int] = field(default_factory=dict)
    completed: bool = False
    score: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def status(self) -> AttemptStatus:
        return AttemptStatus.COMPLETED if self.completed else AttemptStatus.IN_PROGRESS


@dataclass(frozen=True, slots=True)
class QuestionOutcome:
    question_id: int | None
    selected_index: int
    is_correct: bool


@dataclass(frozen=True, slots=True)
class GradeResult:
    """Score of a graded attempt; ``score`` is the stored integer percentage."""

    correct_count: int
    total: int
    score: int
    outcomes: tuple[QuestionOutcome, ...] = ()


@dataclass(frozen=True, slots=True)
class AttemptListing:
    """Attempt joined with the quiz details a student history view shows."""

    attempt: Attempt
    quiz_title: str
    question_count: int


@dataclass(frozen=True, slots=True)
class QuizStatistics:
    quiz_id: int
    total_students: int
    average_score: float
    total_attempts: int
    first_attempt_date: datetime | None
    last_attempt_date: datetime | None


@dataclass(frozen=True, slots=True)
class StudentAttemptSummary:
    quiz_id: int
    student_id: str
    student_name: str
    attempt_count: int
    highest_score: int
    best_attempt_id: int
    first_attempt: datetime | None
    last_attempt: datetime | None


@dataclass(frozen=True, slots=True)
class TeacherOverview:
    total_students: int
    average_score: float
    total_attempts: int


@dataclass(frozen=True, slots=True)
class StudentOverview:
    completed_attempts: int
    average_score: float
    best_score: int
