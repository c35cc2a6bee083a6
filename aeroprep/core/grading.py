"""
Grading engine
Scores a submitted answer map against the authoritative question set
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .errors import NoAnsweredQuestionsError

logger = logging.getLogger(__name__)


@dataclass
class GradedQuestion:
    question_id: int
    question_text: str
    user_answer: str
    correct_answer: str
    is_correct: bool
    explanation: Optional[str] = None

    def to_dict(self):
        return {
            'questionId': self.question_id,
            'questionText': self.question_text,
            'userAnswer': self.user_answer,
            'correctAnswer': self.correct_answer,
            'isCorrect': self.is_correct,
            'explanation': self.explanation,
        }


@dataclass
class GradeResult:
    questions: List[GradedQuestion] = field(default_factory=list)
    correct: int = 0
    total: int = 0
    percentage: int = 0

    @property
    def score(self):
        return {'correct': self.correct, 'total': self.total, 'percentage': self.percentage}

    def to_dict(self):
        return {
            'score': self.score,
            'questions': [graded.to_dict() for graded in self.questions],
        }


def round_half_up(value):
    """Round a non-negative float to the nearest integer, halves going up"""
    return int(math.floor(value + 0.5))


def score_percentage(correct, total):
    """Percentage of correct answers; undefined for an empty batch"""
    if total == 0:
        raise NoAnsweredQuestionsError()
    return round_half_up(correct / total * 100)


def grade(answers: Dict[int, str], questions: Iterable[dict]) -> GradeResult:
    """Grade ``answers`` against ``questions``.

    Questions without an entry in ``answers`` are skipped entirely: they
    appear neither in the result list nor in ``total``. Answer ids that
    match no question are ignored. Correctness is exact string equality.
    """
    result = GradeResult()
    known_ids = set()

    for question in questions:
        question_id = question['id']
        known_ids.add(question_id)
        if question_id not in answers:
            continue

        user_answer = answers[question_id]
        is_correct = user_answer == question['correct_answer']
        result.questions.append(GradedQuestion(
            question_id=question_id,
            question_text=question['question_text'],
            user_answer=user_answer,
            correct_answer=question['correct_answer'],
            is_correct=is_correct,
            explanation=question.get('explanation'),
        ))

    unknown_ids = [question_id for question_id in answers if question_id not in known_ids]
    if unknown_ids:
        logger.warning(f"Skipped answers for unknown questions: {sorted(unknown_ids)}")

    result.total = len(result.questions)
    result.correct = sum(1 for graded in result.questions if graded.is_correct)
    result.percentage = score_percentage(result.correct, result.total)
    return result
