from datetime import datetime, timedelta, timezone

import pytest

from quizdesk.core.models import (
    FillBlankQuestion,
    Identity,
    MultipleChoiceQuestion,
    Role,
    TrueFalseQuestion,
)
from quizdesk.core.quiz_manager import QuizManager
from quizdesk.core.services.attempt_session import AttemptSession
from quizdesk.core.services.quiz_repository import QuizRepository
from quizdesk.core.services.record_store import InMemoryRecordStore
from quizdesk.core.services.sql_record_store import SqlRecordStore


class FakeClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(minutes=1)
        return value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def sql_store(tmp_path):
    store = SqlRecordStore(f"sqlite:///{tmp_path / 'quizdesk.db'}")
    yield store
    store.dispose()


@pytest.fixture
def repository(store, clock):
    return QuizRepository(store, clock=clock)


@pytest.fixture
def session(store, repository, clock):
    return AttemptSession(store, repository, clock=clock)


@pytest.fixture
def manager(store, clock):
    return QuizManager(store, clock=clock)


@pytest.fixture
def teacher():
    return Identity(id="teacher-1", role=Role.TEACHER, display_name="Ms. Frizzle")


@pytest.fixture
def other_teacher():
    return Identity(id="teacher-2", role=Role.TEACHER, display_name="Mr. Keating")


@pytest.fixture
def student():
    return Identity(id="student-1", role=Role.STUDENT, display_name="Arnold")


@pytest.fixture
def other_student():
    return Identity(id="student-2", role=Role.STUDENT, display_name="Wanda")


def mc(text="Pick one", options=("A", "B", "C", "D"), correct=0):
    return MultipleChoiceQuestion(id=None, text=text, options=tuple(options), correct_answer=correct)


def tf(text="The sky is blue", correct=0):
    return TrueFalseQuestion(id=None, text=text, correct_answer=correct)


def fb(text="The capital of France is ___", answer="Paris"):
    return FillBlankQuestion(id=None, text=text, accepted_answer=answer)


@pytest.fixture
def mixed_questions():
    return [
        mc("What is 2 + 2?", ("3", "4", "5", "22"), correct=1),
        tf("Water boils at 100C at sea level", correct=0),
        fb(),
    ]


@pytest.fixture
def mixed_quiz(repository, teacher, mixed_questions):
    return repository.create_quiz(teacher.id, "General knowledge", mixed_questions)
