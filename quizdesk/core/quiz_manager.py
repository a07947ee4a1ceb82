"""Business logic shared by every client of the quiz platform."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime
import logging
from threading import Lock

from quizdesk.core.errors import NotAuthorized, NotFound
from quizdesk.core.models import (
    Attempt,
    AttemptListing,
    AttemptStatus,
    GradeResult,
    Identity,
    Question,
    Quiz,
    QuizStatistics,
    StudentAttemptSummary,
    StudentOverview,
    TeacherOverview,
)
from quizdesk.core.questions import match_typed_answer
from quizdesk.core.services import statistics
from quizdesk.core.services.attempt_session import AttemptSession
from quizdesk.core.services.quiz_repository import QuizRepository
from quizdesk.core.services.record_store import PROFILES, RecordStore
from quizdesk.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class QuizManager:
    """Facade over QuizRepository, AttemptSession and the statistics reducers.

    Every operation takes an explicit ``identity``; when it is omitted the
    record store's current identity is used. Operations are serialized with a
    lock so that read-modify-write updates of one attempt never interleave.
    """

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._lock = Lock()
        self._store = store
        self._repository = QuizRepository(store, clock=clock)
        self._attempts = AttemptSession(store, self._repository, clock=clock)

    # --- Identity ---

    def current_identity(self) -> Identity | None:
        return self._store.get_current_identity()

    def remember_identity(self, identity: Identity) -> None:
        """Store or refresh the profile row for ``identity``.

        A non-empty display name replaces the stored one; an empty name never
        overwrites a name that is already known.
        """
        with self._lock, self._store.transaction():
            profile = self._store.read_record(PROFILES, {"user_id": identity.id})
            if profile is None:
                self._store.create_record(
                    PROFILES,
                    {
                        "user_id": identity.id,
                        "role": identity.role.value,
                        "display_name": identity.display_name or identity.id,
                    },
                )
            elif identity.display_name and identity.display_name != profile.get("display_name"):
                self._store.update_record(
                    PROFILES, profile["id"], {"display_name": identity.display_name}
                )

    def rename_identity(self, display_name: str, identity: Identity | None = None) -> Identity:
        """Persist a new display name and return the updated identity.

        The identity passed in is left untouched; callers propagate the
        returned value to whatever else holds the old one.
        """
        with self._lock:
            current = self._resolve_identity(identity)
            cleaned = (display_name or "").strip()
            if not cleaned:
                raise ValueError("Display name must not be empty.")
            with self._store.transaction():
                profile = self._store.read_record(PROFILES, {"user_id": current.id})
                if profile is None:
                    self._store.create_record(
                        PROFILES,
                        {"user_id": current.id, "role": current.role.value, "display_name": cleaned},
                    )
                else:
                    self._store.update_record(PROFILES, profile["id"], {"display_name": cleaned})
            return replace(current, display_name=cleaned)

    # --- Quiz Authoring ---

    def create_quiz(
        self, title: str, questions: Sequence[Question], identity: Identity | None = None
    ) -> Quiz:
        with self._lock:
            teacher = self._require_teacher(identity)
            return self._repository.create_quiz(teacher.id, title, questions)

    def update_quiz(
        self,
        quiz_id: int,
        title: str,
        questions: Sequence[Question],
        identity: Identity | None = None,
    ) -> Quiz:
        with self._lock:
            teacher = self._require_teacher(identity)
            self._repository.require_owner(quiz_id, teacher.id)
            return self._repository.update_quiz(quiz_id, title, questions)

    def delete_quiz(self, quiz_id: int, identity: Identity | None = None) -> None:
        with self._lock:
            teacher = self._require_teacher(identity)
            self._repository.require_owner(quiz_id, teacher.id)
            self._repository.delete_quiz(quiz_id)

    def get_quiz(self, quiz_id: int) -> Quiz:
        with self._lock:
            return self._repository.get_quiz(quiz_id)

    def list_teacher_quizzes(self, identity: Identity | None = None) -> list[Quiz]:
        with self._lock:
            teacher = self._require_teacher(identity)
            return self._repository.list_quizzes(teacher.id)

    # --- Attempts ---

    def start_attempt(self, quiz_id: int, identity: Identity | None = None) -> Attempt:
        with self._lock:
            student = self._require_student(identity)
            quiz = self._repository.get_quiz(quiz_id)
            return self._attempts.start(quiz, student.id)

    def select_answer(
        self,
        attempt_id: int,
        question_id: int,
        option_index: int,
        identity: Identity | None = None,
    ) -> Attempt:
        with self._lock:
            self._require_attempt_owner(attempt_id, identity)
            return self._attempts.select_answer(attempt_id, question_id, option_index)

    def type_answer(
        self,
        attempt_id: int,
        question_id: int,
        text: str,
        identity: Identity | None = None,
    ) -> Attempt:
        """Store a typed answer as the index of the option it matches (or -1)."""
        with self._lock:
            attempt = self._require_attempt_owner(attempt_id, identity)
            quiz = self._repository.get_quiz(attempt.quiz_id)
            question = quiz.find_question(question_id)
            if question is None:
                raise NotFound(f"Question {question_id} is not part of quiz {quiz.id}.")
            option_index = match_typed_answer(question, text)
            return self._attempts.select_answer(attempt_id, question_id, option_index)

    def submit_attempt(
        self, attempt_id: int, identity: Identity | None = None
    ) -> tuple[Attempt, GradeResult]:
        with self._lock:
            self._require_attempt_owner(attempt_id, identity)
            return self._attempts.submit(attempt_id)

    def get_attempt(self, attempt_id: int, identity: Identity | None = None) -> Attempt:
        with self._lock:
            return self._require_attempt_owner(attempt_id, identity)

    def get_attempt_status(self, quiz_id: int, identity: Identity | None = None) -> AttemptStatus:
        with self._lock:
            student = self._require_student(identity)
            return self._attempts.status_for(quiz_id, student.id)

    def list_student_attempts(self, identity: Identity | None = None) -> list[AttemptListing]:
        with self._lock:
            student = self._require_student(identity)
            listings: list[AttemptListing] = []
            quizzes: dict[int, Quiz] = {}
            for attempt in self._attempts.list_for_student(student.id):
                quiz = quizzes.get(attempt.quiz_id)
                if quiz is None:
                    quiz = self._repository.get_quiz(attempt.quiz_id)
                    quizzes[attempt.quiz_id] = quiz
                listings.append(
                    AttemptListing(
                        attempt=attempt,
                        quiz_title=quiz.title,
                        question_count=len(quiz.questions),
                    )
                )
            return listings

    def get_student_overview(self, identity: Identity | None = None) -> StudentOverview:
        with self._lock:
            student = self._require_student(identity)
            return statistics.student_overview(self._attempts.list_for_student(student.id))

    # --- Statistics ---

    def get_quiz_statistics(self, identity: Identity | None = None) -> list[QuizStatistics]:
        with self._lock:
            quizzes, attempts = self._teacher_attempts(identity)
            return statistics.quiz_statistics([quiz.id for quiz in quizzes], attempts)

    def get_student_summaries(
        self, identity: Identity | None = None
    ) -> list[StudentAttemptSummary]:
        with self._lock:
            _, attempts = self._teacher_attempts(identity)
            return statistics.student_summaries(attempts, self._student_names(attempts))

    def get_teacher_overview(self, identity: Identity | None = None) -> TeacherOverview:
        with self._lock:
            quizzes, attempts = self._teacher_attempts(identity)
            rows = statistics.quiz_statistics([quiz.id for quiz in quizzes], attempts)
            return statistics.teacher_overview(rows)

    # --- Helpers ---

    def _teacher_attempts(self, identity: Identity | None) -> tuple[list[Quiz], list[Attempt]]:
        teacher = self._require_teacher(identity)
        quizzes = self._repository.list_quizzes(teacher.id)
        attempts: list[Attempt] = []
        for quiz in quizzes:
            attempts.extend(self._attempts.list_for_quiz(quiz.id))
        return quizzes, attempts

    def _student_names(self, attempts: Sequence[Attempt]) -> dict[str, str]:
        names: dict[str, str] = {}
        for student_id in {attempt.student_id for attempt in attempts}:
            profile = self._store.read_record(PROFILES, {"user_id": student_id})
            if profile is not None:
                names[student_id] = profile.get("display_name") or student_id
        return names

    def _resolve_identity(self, identity: Identity | None) -> Identity:
        resolved = identity if identity is not None else self._store.get_current_identity()
        if resolved is None:
            raise NotAuthorized("Sign in required.")
        return resolved

    def _require_teacher(self, identity: Identity | None) -> Identity:
        resolved = self._resolve_identity(identity)
        if not resolved.is_teacher:
            logger.warning("User %s attempted a teacher-only operation", resolved.id)
            raise NotAuthorized("Only teachers can manage quizzes.")
        return resolved

    def _require_student(self, identity: Identity | None) -> Identity:
        resolved = self._resolve_identity(identity)
        if not resolved.is_student:
            logger.warning("User %s attempted a student-only operation", resolved.id)
            raise NotAuthorized("Only students can take quizzes.")
        return resolved

    def _require_attempt_owner(self, attempt_id: int, identity: Identity | None) -> Attempt:
        student = self._require_student(identity)
        attempt = self._attempts.get_attempt(attempt_id)
        if attempt.student_id != student.id:
            raise NotAuthorized(f"Attempt {attempt_id} belongs to another student.")
        return attempt
