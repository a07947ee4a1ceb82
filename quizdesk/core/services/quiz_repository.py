"""Service for authoring quizzes and loading them with their questions."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
import logging

from quizdesk.core.errors import InvalidQuestion, InvariantViolation, NotAuthorized, NotFound
from quizdesk.core.models import Question, Quiz
from quizdesk.core.questions import (
    normalize_question,
    question_from_record,
    question_to_record,
    validate,
)
from quizdesk.core.services.record_store import ATTEMPTS, QUESTIONS, QUIZZES, Record, RecordStore
from quizdesk.utils.time_utils import from_iso, to_iso, utc_now

logger = logging.getLogger(__name__)


class QuizRepository:
    """Creates, replaces and deletes quizzes; questions are always written wholesale."""

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    def create_quiz(self, owner_id: str, title: str, questions: Sequence[Question]) -> Quiz:
        """Validate everything, then persist the quiz row and its questions in one transaction."""
        cleaned_title, prepared = self._prepare(title, questions)
        with self._store.transaction():
            quiz_record = self._store.create_record(
                QUIZZES,
                {
                    "title": cleaned_title,
                    "created_by": owner_id,
                    "created_at": to_iso(self._clock()),
                },
            )
            self._insert_questions(quiz_record["id"], prepared)
        logger.info("Quiz %s created by %s", quiz_record["id"], owner_id)
        return self.get_quiz(quiz_record["id"])

    def update_quiz(self, quiz_id: int, title: str, questions: Sequence[Question]) -> Quiz:
        """Replace the title and the full question list of an existing quiz.

        The new questions are inserted before the old ones are removed, and the
        whole replacement is one transaction.
        """
        cleaned_title, prepared = self._prepare(title, questions)
        with self._store.transaction():
            self._read_quiz_record(quiz_id)
            previous = self._store.list_records(QUESTIONS, {"quiz_id": quiz_id})
            self._store.update_record(QUIZZES, quiz_id, {"title": cleaned_title})
            self._insert_questions(quiz_id, prepared)
            for record in previous:
                self._store.delete_record(QUESTIONS, record["id"])
        logger.info("Quiz %s updated with %d questions", quiz_id, len(prepared))
        return self.get_quiz(quiz_id)

    def delete_quiz(self, quiz_id: int) -> None:
        """Delete a quiz together with its attempts and questions."""
        with self._store.transaction():
            self._read_quiz_record(quiz_id)
            for record in self._store.list_records(ATTEMPTS, {"quiz_id": quiz_id}):
                self._store.delete_record(ATTEMPTS, record["id"])
            for record in self._store.list_records(QUESTIONS, {"quiz_id": quiz_id}):
                self._store.delete_record(QUESTIONS, record["id"])
            self._store.delete_record(QUIZZES, quiz_id)
        logger.info("Quiz %s deleted", quiz_id)

    def get_quiz(self, quiz_id: int) -> Quiz:
        return self._to_quiz(self._read_quiz_record(quiz_id))

    def require_owner(self, quiz_id: int, owner_id: str) -> None:
        """Check ownership on the bare quiz row, without loading its questions."""
        record = self._read_quiz_record(quiz_id)
        if record.get("created_by") != owner_id:
            raise NotAuthorized(f"Quiz {quiz_id} belongs to another teacher.")

    def list_quizzes(self, owner_id: str) -> list[Quiz]:
        records = self._store.list_records(QUIZZES, {"created_by": owner_id}, order_by="id")
        return [self._to_quiz(record) for record in records]

    def _read_quiz_record(self, quiz_id: int) -> Record:
        record = self._store.read_record(QUIZZES, {"id": quiz_id})
        if record is None:
            raise NotFound(f"Quiz {quiz_id} not found.")
        return record

    def _to_quiz(self, record: Record) -> Quiz:
        question_records = self._store.list_records(
            QUESTIONS, {"quiz_id": record["id"]}, order_by="position"
        )
        questions = tuple(question_from_record(q) for q in question_records)
        if not questions:
            raise InvariantViolation(f"Quiz {record['id']} has no questions.")
        return Quiz(
            id=record["id"],
            title=record.get("title", ""),
            created_by=record.get("created_by", ""),
            questions=questions,
            created_at=from_iso(record.get("created_at")),
        )

    def _insert_questions(self, quiz_id: int, questions: Sequence[Question]) -> None:
        for position, question in enumerate(questions):
            fields = question_to_record(question)
            fields["quiz_id"] = quiz_id
            fields["position"] = position
            self._store.create_record(QUESTIONS, fields)

    @staticmethod
    def _prepare(title: str, questions: Sequence[Question]) -> tuple[str, list[Question]]:
        cleaned_title = (title or "").strip()
        if not cleaned_title:
            raise InvalidQuestion("Quiz title is required")
        if not questions:
            raise InvalidQuestion("Quiz must contain at least one question")

        prepared: list[Question] = []
        for position, question in enumerate(questions, start=1):
            normalized = normalize_question(question)
            try:
                validate(normalized)
            except InvalidQuestion as exc:
                raise InvalidQuestion(f"Question {position}: {exc}") from exc
            prepared.append(normalized)
        return cleaned_title, prepared
