"""FastAPI server exposing quiz authoring, attempts and statistics."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from quizdesk.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from quizdesk.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizdesk.core.errors import (
    AttemptClosed,
    DuplicateAttempt,
    IncompleteAttempt,
    InvalidQuestion,
    InvariantViolation,
    NotAuthorized,
    NotFound,
    QuizDeskError,
    StorageUnavailable,
)
from quizdesk.core.markdown_renderer import renderer
from quizdesk.core.models import (
    Attempt,
    FillBlankQuestion,
    GradeResult,
    Identity,
    Question,
    QuestionType,
    Quiz,
    Role,
)
from quizdesk.core.questions import build_question
from quizdesk.core.quiz_manager import QuizManager
from quizdesk.utils.time_utils import to_iso

_ERROR_STATUS: tuple[tuple[type[QuizDeskError], int], ...] = (
    (InvalidQuestion, 422),
    (NotFound, 404),
    (NotAuthorized, 403),
    (DuplicateAttempt, 409),
    (IncompleteAttempt, 409),
    (AttemptClosed, 409),
    (StorageUnavailable, 503),
    (InvariantViolation, 500),
)


class QuestionPayload(BaseModel):
    """Payload schema for one authored question."""

    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    text: str
    options: list[str] = Field(default_factory=list)
    correct_answer: int = 0


class QuizPayload(BaseModel):
    """Payload schema for creating or replacing a quiz."""

    title: str
    questions: list[QuestionPayload]


class AnswerPayload(BaseModel):
    """Payload schema for a selected option or a typed fill-in-the-blank answer."""

    selected_option_index: int | None = None
    text: str | None = None


class ProfilePayload(BaseModel):
    display_name: str


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def _status_for(exc: QuizDeskError) -> int:
    return next((code for error_type, code in _ERROR_STATUS if isinstance(exc, error_type)), 500)


def _questions_from_payload(payload: QuizPayload) -> list[Question]:
    return [
        build_question(item.type, item.text, item.options, item.correct_answer)
        for item in payload.questions
    ]


def _question_to_dict(question: Question, include_answers: bool) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": question.id,
        "type": question.question_type.value,
        "text": question.text,
    }
    if include_answers:
        data["options"] = list(question.options)
        data["correct_answer"] = (
            0 if isinstance(question, FillBlankQuestion) else question.correct_answer
        )
    else:
        # Students type fill-in-the-blank answers, so the accepted text stays hidden.
        data["options"] = [] if isinstance(question, FillBlankQuestion) else list(question.options)
        data["prompt_html"] = renderer.render_fragment(question.text)
    return data


def _quiz_to_dict(quiz: Quiz, include_answers: bool) -> dict[str, Any]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "created_by": quiz.created_by,
        "created_at": to_iso(quiz.created_at),
        "questions": [_question_to_dict(q, include_answers) for q in quiz.questions],
    }


def _attempt_to_dict(attempt: Attempt) -> dict[str, Any]:
    return {
        "id": attempt.id,
        "quiz_id": attempt.quiz_id,
        "student_id": attempt.student_id,
        "status": attempt.status.value,
        "answers": {str(qid): index for qid, index in attempt.answers.items()},
        "completed": attempt.completed,
        "score": attempt.score,
        "started_at": to_iso(attempt.started_at),
        "completed_at": to_iso(attempt.completed_at),
    }


def _grade_to_dict(result: GradeResult) -> dict[str, Any]:
    return {
        "correct_count": result.correct_count,
        "total": result.total,
        "score": result.score,
        "questions": [
            {
                "question_id": outcome.question_id,
                "selected_index": outcome.selected_index,
                "is_correct": outcome.is_correct,
            }
            for outcome in result.outcomes
        ],
    }


def create_api_app(quiz_manager: QuizManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(title=f"{APP_NAME} API", description=APP_ABOUT_TEXT, version=APP_VERSION)
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    def identity_dep(
        x_user_id: str | None = Header(default=None),
        x_user_role: str | None = Header(default=None),
        x_user_name: str | None = Header(default=None),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> Identity | None:
        if not x_user_id:
            return manager.current_identity()
        try:
            role = Role((x_user_role or "").strip().lower())
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="X-User-Role must be teacher or student") from exc
        identity = Identity(id=x_user_id, role=role, display_name=(x_user_name or "").strip())
        manager.remember_identity(identity)
        return identity

    @app.exception_handler(QuizDeskError)
    async def handle_quiz_error(request: Request, exc: QuizDeskError) -> JSONResponse:
        return JSONResponse(
            status_code=_status_for(exc),
            content={"detail": str(exc), "error": type(exc).__name__},
        )

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "app": APP_NAME, "version": APP_VERSION}

    # --- Quizzes ---

    @app.post("/quizzes", status_code=201)
    def create_quiz(
        payload: QuizPayload,
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz = manager.create_quiz(payload.title, _questions_from_payload(payload), identity)
        return _quiz_to_dict(quiz, include_answers=True)

    @app.get("/quizzes")
    def list_quizzes(
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [
            _quiz_to_dict(quiz, include_answers=True)
            for quiz in manager.list_teacher_quizzes(identity)
        ]

    @app.get("/quizzes/{quiz_id}")
    def get_quiz(
        quiz_id: int,
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        if identity is None:
            raise NotAuthorized("Sign in required.")
        quiz = manager.get_quiz(quiz_id)
        is_owner = identity.is_teacher and quiz.created_by == identity.id
        data = _quiz_to_dict(quiz, include_answers=is_owner)
        if identity.is_student:
            data["status"] = manager.get_attempt_status(quiz_id, identity).value
        return data

    @app.put("/quizzes/{quiz_id}")
    def update_quiz(
        quiz_id: int,
        payload: QuizPayload,
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz = manager.update_quiz(
            quiz_id, payload.title, _questions_from_payload(payload), identity
        )
        return _quiz_to_dict(quiz, include_answers=True)

    @app.delete("/quizzes/{quiz_id}")
    def delete_quiz(
        quiz_id: int,
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        manager.delete_quiz(quiz_id, identity)
        return {"id": quiz_id, "deleted": True}

    # --- Attempts ---

    @app.post("/quizzes/{quiz_id}/attempts", status_code=201)
    def start_attempt(
        quiz_id: int,
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        attempt = manager.start_attempt(quiz_id, identity)
        return _attempt_to_dict(attempt)

    @app.get("/attempts/{attempt_id}")
    def get_attempt(
        attempt_id: int,
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _attempt_to_dict(manager.get_attempt(attempt_id, identity))

    @app.put("/attempts/{attempt_id}/answers/{question_id}")
    def select_answer(
        attempt_id: int,
        question_id: int,
        payload: AnswerPayload,
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        if payload.selected_option_index is not None:
            attempt = manager.select_answer(
                attempt_id, question_id, payload.selected_option_index, identity
            )
        elif payload.text is not None:
            attempt = manager.type_answer(attempt_id, question_id, payload.text, identity)
        else:
            raise HTTPException(
                status_code=422, detail="Provide selected_option_index or text"
            )
        return _attempt_to_dict(attempt)

    @app.post("/attempts/{attempt_id}/submit")
    def submit_attempt(
        attempt_id: int,
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        attempt, result = manager.submit_attempt(attempt_id, identity)
        return {"attempt": _attempt_to_dict(attempt), "result": _grade_to_dict(result)}

    # --- Current user ---

    @app.get("/me/attempts")
    def list_my_attempts(
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        listings = manager.list_student_attempts(identity)
        overview = manager.get_student_overview(identity)
        return {
            "overview": {
                "completed_attempts": overview.completed_attempts,
                "average_score": overview.average_score,
                "best_score": overview.best_score,
            },
            "attempts": [
                {
                    **_attempt_to_dict(listing.attempt),
                    "quiz_title": listing.quiz_title,
                    "question_count": listing.question_count,
                }
                for listing in listings
            ],
        }

    @app.put("/me/profile")
    def update_profile(
        payload: ProfilePayload,
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            updated = manager.rename_identity(payload.display_name, identity)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"id": updated.id, "role": updated.role.value, "display_name": updated.display_name}

    # --- Statistics ---

    @app.get("/statistics")
    def get_statistics(
        identity: Identity | None = Depends(identity_dep),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz_rows = manager.get_quiz_statistics(identity)
        student_rows = manager.get_student_summaries(identity)
        overview = manager.get_teacher_overview(identity)
        return {
            "overview": {
                "total_students": overview.total_students,
                "average_score": overview.average_score,
                "total_attempts": overview.total_attempts,
            },
            "quizzes": [
                {
                    "quiz_id": row.quiz_id,
                    "total_students": row.total_students,
                    "average_score": row.average_score,
                    "total_attempts": row.total_attempts,
                    "first_attempt_date": to_iso(row.first_attempt_date),
                    "last_attempt_date": to_iso(row.last_attempt_date),
                }
                for row in quiz_rows
            ],
            "students": [
                {
                    "quiz_id": row.quiz_id,
                    "student_id": row.student_id,
                    "student_name": row.student_name,
                    "attempt_count": row.attempt_count,
                    "highest_score": row.highest_score,
                    "best_attempt_id": row.best_attempt_id,
                    "first_attempt": to_iso(row.first_attempt),
                    "last_attempt": to_iso(row.last_attempt),
                }
                for row in student_rows
            ],
        }

    return app


def run_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    log_level: str = "info",
) -> None:
    """Serve the API with uvicorn until the process is stopped."""
    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level.lower())
    server = uvicorn.Server(config)
    server.run()
