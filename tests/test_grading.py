import pytest

from aeroprep.core.errors import NoAnsweredQuestionsError
from aeroprep.core.grading import grade, round_half_up, score_percentage


def make_question(question_id, correct, text=None):
    return {
        "id": question_id,
        "question_text": text or f"Question {question_id}",
        "correct_answer": correct,
        "explanation": f"Because {correct}",
    }


QUESTIONS = [make_question(1, "B"), make_question(2, "A"), make_question(3, "C")]


def test_grades_answered_subset_and_skips_the_rest():
    result = grade({1: "B", 2: "C"}, QUESTIONS)

    assert result.score == {"correct": 1, "total": 2, "percentage": 50}
    assert [q.question_id for q in result.questions] == [1, 2]
    assert [q.is_correct for q in result.questions] == [True, False]


def test_result_follows_question_order_not_answer_order():
    result = grade({3: "C", 1: "A"}, QUESTIONS)

    assert [q.question_id for q in result.questions] == [1, 3]


def test_exact_string_equality():
    result = grade({1: "b", 2: " A"}, QUESTIONS)

    assert result.correct == 0
    assert result.total == 2


def test_unknown_question_ids_are_skipped(caplog):
    result = grade({1: "B", 99: "A"}, QUESTIONS)

    assert result.total == 1
    assert "99" in caplog.text


def test_no_answered_questions_raises():
    with pytest.raises(NoAnsweredQuestionsError):
        grade({}, QUESTIONS)
    with pytest.raises(NoAnsweredQuestionsError):
        grade({42: "A"}, QUESTIONS)


def test_grading_is_deterministic():
    answers = {1: "B", 2: "A", 3: "D"}
    assert grade(answers, QUESTIONS).to_dict() == grade(answers, QUESTIONS).to_dict()


def test_to_dict_shape():
    payload = grade({1: "B"}, QUESTIONS).to_dict()

    assert payload["score"] == {"correct": 1, "total": 1, "percentage": 100}
    assert payload["questions"][0] == {
        "questionId": 1,
        "questionText": "Question 1",
        "userAnswer": "B",
        "correctAnswer": "B",
        "isCorrect": True,
        "explanation": "Because B",
    }


@pytest.mark.parametrize("correct,total,expected", [
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),   # 12.5 rounds up
    (0, 5, 0),
    (5, 5, 100),
])
def test_score_percentage_rounds_half_up(correct, total, expected):
    assert score_percentage(correct, total) == expected


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2
