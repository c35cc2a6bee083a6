"""
Fixed enumerations shared by the question bank, exams and statistics
"""
from .errors import ValidationError


CATEGORIES = ('pilot', 'hostess', 'amt')
QUESTION_TYPES = ('math', 'reading', 'mechanical', 'abstract')
DIFFICULTIES = ('easy', 'medium', 'hard')
ROLES = ('admin', 'user')

# Display names for the practice subject catalogue
CATEGORY_NAMES = {
    'pilot': 'Pilot',
    'hostess': 'Cabin Crew',
    'amt': 'AMT',
}
QUESTION_TYPE_NAMES = {
    'math': 'Mathematics',
    'reading': 'Reading Comprehension',
    'mechanical': 'Mechanical Principles',
    'abstract': 'Abstract Reasoning',
}
QUESTION_TYPE_DESCRIPTIONS = {
    'math': 'Core mathematical concepts and calculations',
    'reading': 'Text comprehension and interpretation skills',
    'mechanical': 'Understanding of mechanical systems and principles',
    'abstract': 'Pattern recognition and logical reasoning',
}

# Option letters by position; a question carries 2-4 options
ANSWER_KEYS = ('A', 'B', 'C', 'D')
MIN_OPTIONS = 2
MAX_OPTIONS = 4

TIMEFRAMES = {
    'all': None,
    'week': 7,
    'month': 30,
}

LEADERBOARD_TYPES = ('practice', 'exam')

# Upper bound on an answer map and on the questions of one exam
MAX_SUBMITTED_ANSWERS = 500

# Exams accept 1-300 minute limits
MIN_TIME_LIMIT = 1
MAX_TIME_LIMIT = 300


def require_member(value, allowed, label):
    """Reject filter values outside a fixed enumeration"""
    if value is not None and value not in allowed:
        raise ValidationError(f"Invalid {label}: {value!r}")
    return value
