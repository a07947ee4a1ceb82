"""Service tracking a student's attempt from joining a quiz to submitting it."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging

from quizdesk.core.errors import AttemptClosed, DuplicateAttempt, IncompleteAttempt, NotFound
from quizdesk.core.grading import grade
from quizdesk.core.models import Attempt, AttemptStatus, GradeResult, Quiz
from quizdesk.core.services.quiz_repository import QuizRepository
from quizdesk.core.services.record_store import ATTEMPTS, Record, RecordStore
from quizdesk.utils.time_utils import from_iso, to_iso, utc_now

logger = logging.getLogger(__name__)


class AttemptSession:
    """State machine for attempts: in progress until submitted, then completed for good.

    Every change is written to the record store before the call returns, so an
    interrupted attempt can be picked up again by reading the same record.
    """

    def __init__(
        self,
        store: RecordStore,
        quizzes: QuizRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._quizzes = quizzes
        self._clock = clock

    def start(self, quiz: Quiz, student_id: str) -> Attempt:
        """Create an in-progress attempt unless the student already completed ``quiz``."""
        with self._store.transaction():
            completed = self._store.read_record(
                ATTEMPTS, {"quiz_id": quiz.id, "student_id": student_id, "completed": True}
            )
            if completed is not None:
                logger.warning("Student %s tried to rejoin completed quiz %s", student_id, quiz.id)
                raise DuplicateAttempt("You have already completed this quiz")

            record = self._store.create_record(
                ATTEMPTS,
                {
                    "quiz_id": quiz.id,
                    "student_id": student_id,
                    "selected_answers": {},
                    "completed": False,
                    "score": None,
                    "started_at": to_iso(self._clock()),
                    "completed_at": None,
                },
            )
        logger.info("Attempt %s started on quiz %s by %s", record["id"], quiz.id, student_id)
        return self._to_attempt(record)

    def get_attempt(self, attempt_id: int) -> Attempt:
        record = self._store.read_record(ATTEMPTS, {"id": attempt_id})
        if record is None:
            raise NotFound(f"Attempt {attempt_id} not found.")
        return self._to_attempt(record)

    def select_answer(self, attempt_id: int, question_id: int, option_index: int) -> Attempt:
        """Record ``option_index`` for ``question_id``, replacing any earlier choice.

        The index is not range-checked here; out-of-range choices simply grade
        as incorrect on submission.
        """
        attempt = self.get_attempt(attempt_id)
        self._ensure_in_progress(attempt)
        quiz = self._quizzes.get_quiz(attempt.quiz_id)
        if quiz.find_question(question_id) is None:
            raise NotFound(f"Question {question_id} is not part of quiz {quiz.id}.")

        answers = dict(attempt.answers)
        answers[question_id] = int(option_index)
        self._store.update_record(
            ATTEMPTS, attempt_id, {"selected_answers": _encode_answers(answers)}
        )
        attempt.answers = answers
        return attempt

    def submit(self, attempt_id: int) -> tuple[Attempt, GradeResult]:
        """Grade the attempt and freeze score, completion flag and timestamp together."""
        attempt = self.get_attempt(attempt_id)
        self._ensure_in_progress(attempt)
        quiz = self._quizzes.get_quiz(attempt.quiz_id)

        missing = [qid for qid in quiz.question_ids() if qid not in attempt.answers]
        if missing:
            logger.warning(
                "Attempt %s submitted with %d unanswered questions", attempt_id, len(missing)
            )
            raise IncompleteAttempt(
                f"{len(missing)} of {len(quiz.questions)} questions have not been answered."
            )

        result = grade(quiz.questions, attempt.answers)
        completed_at = self._clock()
        self._store.update_record(
            ATTEMPTS,
            attempt_id,
            {
                "score": result.score,
                "completed": True,
                "completed_at": to_iso(completed_at),
                "selected_answers": _encode_answers(attempt.answers),
            },
        )
        attempt.score = result.score
        attempt.completed = True
        attempt.completed_at = from_iso(to_iso(completed_at))
        logger.info(
            "Attempt %s submitted: %d/%d correct, score %d",
            attempt_id,
            result.correct_count,
            result.total,
            result.score,
        )
        return attempt, result

    def status_for(self, quiz_id: int, student_id: str) -> AttemptStatus:
        attempts = self._store.list_records(ATTEMPTS, {"quiz_id": quiz_id, "student_id": student_id})
        if not attempts:
            return AttemptStatus.NOT_STARTED
        if any(record.get("completed") for record in attempts):
            return AttemptStatus.COMPLETED
        return AttemptStatus.IN_PROGRESS

    def list_for_student(self, student_id: str) -> list[Attempt]:
        """Return the student's attempts, newest first."""
        records = self._store.list_records(
            ATTEMPTS, {"student_id": student_id}, order_by="started_at", descending=True
        )
        return [self._to_attempt(record) for record in records]

    def list_for_quiz(self, quiz_id: int) -> list[Attempt]:
        records = self._store.list_records(ATTEMPTS, {"quiz_id": quiz_id}, order_by="id")
        return [self._to_attempt(record) for record in records]

    @staticmethod
    def _ensure_in_progress(attempt: Attempt) -> None:
        if attempt.status is AttemptStatus.COMPLETED:
            logger.warning("Rejected change to completed attempt %s", attempt.id)
            raise AttemptClosed(f"Attempt {attempt.id} has already been submitted.")

    @staticmethod
    def _to_attempt(record: Record) -> Attempt:
        completed = bool(record.get("completed"))
        return Attempt(
            id=record["id"],
            quiz_id=record["quiz_id"],
            student_id=record["student_id"],
            answers=_decode_answers(record.get("selected_answers") or {}),
            completed=completed,
            score=record.get("score") if completed else None,
            started_at=from_iso(record.get("started_at")),
            completed_at=from_iso(record.get("completed_at")),
        )


def _encode_answers(answers: dict[int, int]) -> dict[str, int]:
    return {str(question_id): index for question_id, index in answers.items()}


def _decode_answers(raw: dict[str, int]) -> dict[int, int]:
    return {int(question_id): int(index) for question_id, index in raw.items()}
