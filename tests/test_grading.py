"""
Tests for the grading engine.
"""

import pytest

from quizdesk.constants.quiz_constants import NO_ANSWER
from quizdesk.core.errors import InvariantViolation
from quizdesk.core.grading import grade, percentage
from quizdesk.core.models import FillBlankQuestion, MultipleChoiceQuestion


def _mc(question_id, correct):
    return MultipleChoiceQuestion(
        id=question_id, text=f"Q{question_id}", options=("a", "b", "c", "d"), correct_answer=correct
    )


class TestGrade:
    def test_one_of_two_correct_scores_fifty(self):
        questions = [_mc(1, 1), _mc(2, 3)]
        result = grade(questions, {1: 1, 2: 2})
        assert result.correct_count == 1
        assert result.total == 2
        assert result.score == 50
        assert [o.is_correct for o in result.outcomes] == [True, False]

    def test_grading_is_repeatable(self):
        questions = [_mc(1, 1), _mc(2, 3), _mc(3, 0)]
        answers = {1: 1, 2: 3, 3: 2}
        assert grade(questions, answers) == grade(questions, answers)

    def test_missing_answer_counts_as_incorrect(self):
        result = grade([_mc(1, 0), _mc(2, 0)], {1: 0})
        assert result.correct_count == 1
        assert result.outcomes[1].selected_index == NO_ANSWER

    def test_out_of_range_choice_is_incorrect(self):
        assert grade([_mc(1, 0)], {1: 9}).score == 0

    def test_fill_blank_is_graded_by_text(self):
        question = FillBlankQuestion(id=5, text="___ is red", accepted_answer=" Mars ")
        assert grade([question], {5: 0}).score == 100
        assert grade([question], {5: NO_ANSWER}).score == 0

    def test_zero_questions_is_a_contract_violation(self):
        with pytest.raises(InvariantViolation):
            grade([], {})


class TestPercentage:
    @pytest.mark.parametrize(
        "correct,total,expected",
        [
            (0, 3, 0),
            (1, 3, 33),
            (2, 3, 67),
            (3, 3, 100),
            (1, 8, 13),  # 12.5 rounds up
            (5, 8, 63),  # 62.5 rounds up
        ],
    )
    def test_rounds_half_up(self, correct, total, expected):
        assert percentage(correct, total) == expected

    def test_score_stays_within_bounds(self):
        for total in range(1, 30):
            for correct in range(total + 1):
                assert 0 <= percentage(correct, total) <= 100
