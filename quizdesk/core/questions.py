"""Question variants: authoring validation, answer matching and record conversion.

Every question type shares the same stored row shape (``type``, ``text``,
``options``, ``correct_answer``) but each variant only keeps the fields it
needs once loaded:

    multiple_choice  options + correct index
    true_false       correct index (options are always True/False)
    fill_blank       accepted answer text; prompt must contain ``___``

Answers are option indexes. A fill-in-the-blank answer is typed text which is
matched against the accepted answer and stored as index 0 on a match, or as
``NO_ANSWER`` when nothing matches.
"""

from __future__ import annotations

from typing import Any, Sequence

from quizdesk.constants.quiz_constants import (
    BLANK_MARKER,
    MIN_MULTIPLE_CHOICE_OPTIONS,
    NO_ANSWER,
    TRUE_FALSE_OPTIONS,
)
from quizdesk.core.errors import InvalidQuestion
from quizdesk.core.models import (
    FillBlankQuestion,
    MultipleChoiceQuestion,
    Question,
    QuestionType,
    TrueFalseQuestion,
)


def build_question(
    question_type: QuestionType | str,
    text: str,
    options: Sequence[str],
    correct_answer: int = 0,
    question_id: int | None = None,
) -> Question:
    """Create the variant for ``question_type`` from the shared row shape.

    Raises ``InvalidQuestion`` when the type is unknown or the options do not
    have the shape the type requires. Content rules are checked by ``validate``.
    """
    try:
        kind = QuestionType(question_type)
    except ValueError as exc:
        raise InvalidQuestion(f"Unknown question type: {question_type!r}.") from exc

    option_list = [str(option) for option in options]
    if kind is QuestionType.MULTIPLE_CHOICE:
        return MultipleChoiceQuestion(
            id=question_id,
            text=text,
            options=tuple(option_list),
            correct_answer=correct_answer,
        )
    if kind is QuestionType.TRUE_FALSE:
        if not _is_true_false_pair(option_list):
            raise InvalidQuestion(
                "True/False questions must have exactly two options: True and False"
            )
        return TrueFalseQuestion(id=question_id, text=text, correct_answer=correct_answer)

    if len(option_list) != 1:
        raise InvalidQuestion("Fill in the blank questions must have exactly one answer")
    return FillBlankQuestion(id=question_id, text=text, accepted_answer=option_list[0])


def normalize_question(question: Question) -> Question:
    """Return a copy with prompt and option text stripped of surrounding whitespace."""
    text = question.text.strip()
    if isinstance(question, MultipleChoiceQuestion):
        return MultipleChoiceQuestion(
            id=question.id,
            text=text,
            options=tuple(option.strip() for option in question.options),
            correct_answer=question.correct_answer,
        )
    if isinstance(question, TrueFalseQuestion):
        return TrueFalseQuestion(id=question.id, text=text, correct_answer=question.correct_answer)
    return FillBlankQuestion(
        id=question.id, text=text, accepted_answer=question.accepted_answer.strip()
    )


def validate(question: Question) -> None:
    """Raise ``InvalidQuestion`` if the question cannot be published as authored."""
    if not question.text.strip():
        raise InvalidQuestion("All questions must have text")

    if isinstance(question, MultipleChoiceQuestion):
        if len(question.options) < MIN_MULTIPLE_CHOICE_OPTIONS:
            raise InvalidQuestion(
                f"Multiple choice questions need at least {MIN_MULTIPLE_CHOICE_OPTIONS} options"
            )
        if any(not option.strip() for option in question.options):
            raise InvalidQuestion("All options must be filled out")
        if not 0 <= question.correct_answer < len(question.options):
            raise InvalidQuestion("Correct answer must point at one of the options")
    elif isinstance(question, TrueFalseQuestion):
        if question.correct_answer not in (0, 1):
            raise InvalidQuestion("True/False correct answer must be 0 (True) or 1 (False)")
    elif isinstance(question, FillBlankQuestion):
        if not question.accepted_answer.strip():
            raise InvalidQuestion("Fill in the blank questions must have an answer")
        if BLANK_MARKER not in question.text:
            raise InvalidQuestion(
                f'Fill in the blank questions must contain "{BLANK_MARKER}" to indicate the blank'
            )
    else:
        raise InvalidQuestion(f"Unsupported question object: {type(question).__name__}")


def is_correct(question: Question, given_index: int) -> bool:
    """Return whether ``given_index`` answers ``question`` correctly."""
    if given_index is None or given_index == NO_ANSWER or given_index < 0:
        return False
    if isinstance(question, FillBlankQuestion):
        if given_index >= len(question.options):
            return False
        return _fold(question.options[given_index]) == _fold(question.accepted_answer)
    return given_index == question.correct_answer


def match_typed_answer(question: Question, typed_text: str) -> int:
    """Map free text onto an option index, or ``NO_ANSWER`` when nothing matches."""
    wanted = _fold(typed_text or "")
    if not wanted:
        return NO_ANSWER
    for index, option in enumerate(question.options):
        if _fold(option) == wanted:
            return index
    return NO_ANSWER


def question_from_record(record: dict[str, Any]) -> Question:
    """Build a question variant from a stored ``questions`` row."""
    return build_question(
        record.get("type", ""),
        record.get("text", ""),
        record.get("options") or [],
        int(record.get("correct_answer", 0)),
        question_id=record.get("id"),
    )


def question_to_record(question: Question) -> dict[str, Any]:
    """Return the stored row fields for ``question`` (without ``quiz_id``/``position``)."""
    correct_answer = 0 if isinstance(question, FillBlankQuestion) else question.correct_answer
    return {
        "type": question.question_type.value,
        "text": question.text,
        "options": list(question.options),
        "correct_answer": correct_answer,
    }


def _fold(text: str) -> str:
    return text.strip().casefold()


def _is_true_false_pair(options: Sequence[str]) -> bool:
    if len(options) != len(TRUE_FALSE_OPTIONS):
        return False
    return all(
        given.strip().lower() == expected.lower()
        for given, expected in zip(options, TRUE_FALSE_OPTIONS)
    )
