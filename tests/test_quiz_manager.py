"""
Tests for the QuizManager facade: roles, ownership, identity handling and the
end-to-end flow from authoring to statistics.
"""

from dataclasses import replace

import pytest

from conftest import fb, mc
from quizdesk.core.errors import DuplicateAttempt, NotAuthorized, StorageUnavailable
from quizdesk.core.models import AttemptStatus
from quizdesk.core.quiz_manager import QuizManager
from quizdesk.core.services.record_store import ATTEMPTS, QUESTIONS, QUIZZES, InMemoryRecordStore
from quizdesk.core.services.sql_record_store import SqlRecordStore


class TestRoles:
    def test_students_cannot_author(self, manager, student):
        with pytest.raises(NotAuthorized):
            manager.create_quiz("Nope", [mc()], student)

    def test_teachers_cannot_take_quizzes(self, manager, teacher):
        quiz = manager.create_quiz("Quiz", [mc()], teacher)
        with pytest.raises(NotAuthorized):
            manager.start_attempt(quiz.id, teacher)

    def test_only_owner_edits_or_deletes(self, manager, teacher, other_teacher):
        quiz = manager.create_quiz("Quiz", [mc()], teacher)
        with pytest.raises(NotAuthorized):
            manager.update_quiz(quiz.id, "Hijacked", [mc()], other_teacher)
        with pytest.raises(NotAuthorized):
            manager.delete_quiz(quiz.id, other_teacher)
        assert manager.get_quiz(quiz.id).title == "Quiz"

    def test_only_owner_touches_attempt(self, manager, teacher, student, other_student):
        quiz = manager.create_quiz("Quiz", [mc()], teacher)
        attempt = manager.start_attempt(quiz.id, student)
        with pytest.raises(NotAuthorized):
            manager.select_answer(attempt.id, quiz.questions[0].id, 0, other_student)
        with pytest.raises(NotAuthorized):
            manager.submit_attempt(attempt.id, other_student)

    def test_missing_identity(self, manager):
        with pytest.raises(NotAuthorized):
            manager.list_teacher_quizzes()


class TestIdentity:
    def test_falls_back_to_signed_in_identity(self, store, manager, teacher):
        store.sign_in(teacher)
        quiz = manager.create_quiz("Signed in", [mc()])
        assert quiz.created_by == teacher.id

    def test_rename_returns_new_identity(self, manager, student):
        renamed = manager.rename_identity("  Arnold P.  ", student)

        assert renamed.display_name == "Arnold P."
        assert renamed.id == student.id
        assert student.display_name == "Arnold"

    def test_rename_rejects_blank_names(self, manager, student):
        with pytest.raises(ValueError):
            manager.rename_identity("   ", student)

    def test_profile_name_used_in_summaries(self, manager, teacher, student):
        manager.remember_identity(student)
        quiz = manager.create_quiz("Quiz", [mc(correct=0)], teacher)
        attempt = manager.start_attempt(quiz.id, student)
        manager.select_answer(attempt.id, quiz.questions[0].id, 0, student)
        manager.submit_attempt(attempt.id, student)

        manager.rename_identity("Arnold Perlstein", student)

        [summary] = manager.get_student_summaries(teacher)
        assert summary.student_name == "Arnold Perlstein"

    def test_new_display_name_refreshes_profile(self, manager, teacher, student):
        manager.remember_identity(student)
        quiz = manager.create_quiz("Quiz", [mc(correct=0)], teacher)
        attempt = manager.start_attempt(quiz.id, student)
        manager.select_answer(attempt.id, quiz.questions[0].id, 0, student)
        manager.submit_attempt(attempt.id, student)

        manager.remember_identity(replace(student, display_name="Arnie"))
        manager.remember_identity(replace(student, display_name=""))

        [summary] = manager.get_student_summaries(teacher)
        assert summary.student_name == "Arnie"


class TestEndToEnd:
    def test_full_flow(self, manager, teacher, student, other_student):
        quiz = manager.create_quiz(
            "Geography",
            [mc("Largest ocean?", ("Atlantic", "Pacific", "Indian", "Arctic"), 1), fb()],
            teacher,
        )
        q1, q2 = quiz.questions

        attempt = manager.start_attempt(quiz.id, student)
        manager.select_answer(attempt.id, q1.id, 1, student)
        manager.type_answer(attempt.id, q2.id, "  pARIS ", student)
        assert manager.get_attempt(attempt.id, student).answers == {q1.id: 1, q2.id: 0}

        _, result = manager.submit_attempt(attempt.id, student)
        assert result.score == 100
        assert manager.get_attempt_status(quiz.id, student) is AttemptStatus.COMPLETED

        with pytest.raises(DuplicateAttempt):
            manager.start_attempt(quiz.id, student)

        other = manager.start_attempt(quiz.id, other_student)
        manager.select_answer(other.id, q1.id, 0, other_student)
        manager.type_answer(other.id, q2.id, "Lyon", other_student)
        _, other_result = manager.submit_attempt(other.id, other_student)
        assert other_result.score == 0

        [stats] = manager.get_quiz_statistics(teacher)
        assert (stats.total_attempts, stats.total_students, stats.average_score) == (2, 2, 50)
        overview = manager.get_teacher_overview(teacher)
        assert overview.total_attempts == 2

        [listing] = manager.list_student_attempts(student)
        assert listing.quiz_title == "Geography"
        assert listing.question_count == 2
        assert manager.get_student_overview(student).best_score == 100

    def test_delete_quiz_leaves_no_orphans(self, manager, store, teacher, student):
        quiz = manager.create_quiz("Doomed", [mc(), mc()], teacher)
        manager.start_attempt(quiz.id, student)

        manager.delete_quiz(quiz.id, teacher)

        assert store.list_records(QUESTIONS) == []
        assert store.list_records(ATTEMPTS) == []
        assert manager.list_teacher_quizzes(teacher) == []
        assert manager.list_student_attempts(student) == []


class _FlakyStore(InMemoryRecordStore):
    def __init__(self):
        super().__init__()
        self.fail_updates = False
        self.fail_inserts = False

    def create_record(self, collection, fields):
        if self.fail_inserts:
            raise StorageUnavailable("backend offline")
        return super().create_record(collection, fields)

    def update_record(self, collection, record_id, fields):
        if self.fail_updates:
            raise StorageUnavailable("backend offline")
        super().update_record(collection, record_id, fields)


class TestStorageFailures:
    def test_failure_is_surfaced_and_state_kept(self, teacher, student):
        store = _FlakyStore()
        manager = QuizManager(store)
        quiz = manager.create_quiz("Quiz", [mc(correct=0)], teacher)
        attempt = manager.start_attempt(quiz.id, student)
        manager.select_answer(attempt.id, quiz.questions[0].id, 0, student)

        store.fail_updates = True
        with pytest.raises(StorageUnavailable):
            manager.submit_attempt(attempt.id, student)

        store.fail_updates = False
        reloaded = manager.get_attempt(attempt.id, student)
        assert reloaded.status is AttemptStatus.IN_PROGRESS
        assert reloaded.answers == {quiz.questions[0].id: 0}

    def test_failed_update_keeps_dashboard_working(self, teacher, student):
        store = _FlakyStore()
        manager = QuizManager(store)
        quiz = manager.create_quiz("Quiz", [mc(correct=0), mc(correct=1)], teacher)

        store.fail_inserts = True
        with pytest.raises(StorageUnavailable):
            manager.update_quiz(quiz.id, "Rewritten", [mc()], teacher)
        store.fail_inserts = False

        assert manager.list_teacher_quizzes(teacher) == [quiz]
        [stats] = manager.get_quiz_statistics(teacher)
        assert stats.quiz_id == quiz.id
        manager.delete_quiz(quiz.id, teacher)
        assert manager.list_teacher_quizzes(teacher) == []

    def test_owner_can_delete_quiz_without_questions(self, store, manager, teacher):
        bare = store.create_record(QUIZZES, {"title": "Broken", "created_by": teacher.id})

        manager.delete_quiz(bare["id"], teacher)

        assert store.list_records(QUIZZES) == []


class TestSqlBackedManager:
    def test_attempt_flow_persists_across_reopen(self, tmp_path, teacher, student):
        url = f"sqlite:///{tmp_path / 'quizdesk.db'}"
        store = SqlRecordStore(url)
        manager = QuizManager(store)
        quiz = manager.create_quiz("Persisted", [mc(correct=1), fb()], teacher)
        attempt = manager.start_attempt(quiz.id, student)
        manager.select_answer(attempt.id, quiz.questions[0].id, 1, student)
        manager.type_answer(attempt.id, quiz.questions[1].id, "paris", student)
        _, result = manager.submit_attempt(attempt.id, student)
        store.dispose()

        reopened = SqlRecordStore(url)
        try:
            manager = QuizManager(reopened)
            assert manager.get_quiz(quiz.id) == quiz
            stored = manager.get_attempt(attempt.id, student)
            assert stored.status is AttemptStatus.COMPLETED
            assert stored.score == result.score == 100
            assert manager.get_attempt_status(quiz.id, student) is AttemptStatus.COMPLETED
        finally:
            reopened.dispose()
