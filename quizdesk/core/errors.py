"""Exceptions raised by the quiz core."""

from __future__ import annotations


class QuizDeskError(Exception):
    """Base class for every error the quiz core reports to callers."""


class InvalidQuestion(QuizDeskError):
    """Raised when authored quiz content violates the rules of its question type."""


class DuplicateAttempt(QuizDeskError):
    """Raised when a student joins a quiz they have already completed."""


class IncompleteAttempt(QuizDeskError):
    """Raised when an attempt is submitted before every question has an answer."""


class AttemptClosed(QuizDeskError):
    """Raised when a completed attempt is changed or submitted again."""


class NotFound(QuizDeskError):
    """Raised when a quiz, question or attempt identifier does not resolve."""


class NotAuthorized(QuizDeskError):
    """Raised when the caller has no identity, the wrong role, or does not own the record."""


class InvariantViolation(QuizDeskError):
    """Raised when data reaches a state the data model forbids."""


class StorageUnavailable(QuizDeskError):
    """Raised when the record store cannot complete a call."""
