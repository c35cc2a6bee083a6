"""
Request models
Every body and query string is validated here before it reaches storage
"""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .constants import (
    ANSWER_KEYS, MAX_OPTIONS, MAX_SUBMITTED_ANSWERS, MAX_TIME_LIMIT, MIN_OPTIONS, MIN_TIME_LIMIT,
)

Category = Literal['pilot', 'hostess', 'amt']
QuestionType = Literal['math', 'reading', 'mechanical', 'abstract']
Difficulty = Literal['easy', 'medium', 'hard']
Timeframe = Literal['all', 'week', 'month']
LeaderboardType = Literal['practice', 'exam']
Role = Literal['admin', 'user']


class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


def resolve_answer_key(correct_answer, options):
    """Map a correct answer onto the letter of its option.

    Accepts either a letter key whose position exists in ``options`` or a
    literal equal to one of the options.
    """
    letters = ANSWER_KEYS[:len(options)]
    if correct_answer in letters:
        return correct_answer
    if correct_answer in options:
        return letters[options.index(correct_answer)]
    raise ValueError(f"correct answer must be one of {', '.join(letters)} or match an option")


# Auth

class RegisterRequest(RequestModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class LoginRequest(RequestModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ProfileUpdate(RequestModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None


class PasswordChange(RequestModel):
    current_password: str = Field(min_length=1, alias='currentPassword')
    new_password: str = Field(min_length=6, max_length=128, alias='newPassword')


# Practice and exams

class QuestionSetQuery(RequestModel):
    category: Category
    question_type: Optional[QuestionType] = Field(default=None, alias='questionType')
    difficulty: Optional[Difficulty] = None
    limit: Optional[int] = Field(default=None, ge=1)


class SubmissionRequest(RequestModel):
    answers: Dict[int, str] = Field(max_length=MAX_SUBMITTED_ANSWERS)
    time_spent: Optional[int] = Field(default=None, ge=0, alias='timeSpent')
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=128, alias='idempotencyKey')

    @field_validator('answers', mode='before')
    @classmethod
    def reject_duplicate_ids(cls, value):
        # "7" and "07" are the same question; each would write its own ledger row
        if isinstance(value, dict):
            seen = set()
            for key in value:
                try:
                    question_id = int(key)
                except (TypeError, ValueError):
                    raise ValueError(f"question id {key!r} is not numeric")
                if question_id in seen:
                    raise ValueError(f"question id {question_id} appears more than once")
                seen.add(question_id)
        return value


class PracticeSubmissionRequest(SubmissionRequest):
    session_id: Optional[str] = Field(default=None, max_length=128, alias='sessionId')


class SubjectQuery(RequestModel):
    category: Optional[Category] = None
    search: Optional[str] = None


class ExamListQuery(RequestModel):
    category: Optional[Category] = None


# Statistics

class StatisticsQuery(RequestModel):
    timeframe: Timeframe = 'all'


class ProgressQuery(RequestModel):
    category: Optional[Category] = None
    question_type: Optional[QuestionType] = Field(default=None, alias='questionType')


class LeaderboardQuery(RequestModel):
    type: LeaderboardType = 'practice'
    category: Optional[Category] = None
    limit: int = Field(default=20, ge=1, le=100)


# Certificates

class CertificateVerifyRequest(RequestModel):
    certificate_number: str = Field(min_length=1, alias='certificateNumber')


# Admin

class AdminListQuery(RequestModel):
    category: Optional[Category] = None
    question_type: Optional[QuestionType] = Field(default=None, alias='questionType')
    difficulty: Optional[Difficulty] = None
    search: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class QuestionCreate(RequestModel):
    question_text: str = Field(min_length=5, alias='questionText')
    options: List[str] = Field(min_length=MIN_OPTIONS, max_length=MAX_OPTIONS)
    correct_answer: str = Field(min_length=1, alias='correctAnswer')
    explanation: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias='imageUrl')
    question_type: QuestionType = Field(alias='questionType')
    category: Category
    difficulty: Difficulty = 'medium'

    @field_validator('options')
    @classmethod
    def options_not_blank(cls, value):
        if any(not option.strip() for option in value):
            raise ValueError('options must not be blank')
        return value

    @model_validator(mode='after')
    def correct_answer_matches_option(self):
        self.correct_answer = resolve_answer_key(self.correct_answer, self.options)
        return self


class QuestionUpdate(RequestModel):
    question_text: Optional[str] = Field(default=None, min_length=5, alias='questionText')
    options: Optional[List[str]] = Field(default=None, min_length=MIN_OPTIONS, max_length=MAX_OPTIONS)
    correct_answer: Optional[str] = Field(default=None, min_length=1, alias='correctAnswer')
    explanation: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias='imageUrl')
    question_type: Optional[QuestionType] = Field(default=None, alias='questionType')
    category: Optional[Category] = None
    difficulty: Optional[Difficulty] = None


class ExamCreate(RequestModel):
    title: str = Field(min_length=3, max_length=255)
    description: Optional[str] = None
    category: Category
    question_types: Optional[List[QuestionType]] = Field(default=None, alias='questionTypes')
    difficulty: Optional[Difficulty] = None
    time_limit: Optional[int] = Field(default=None, ge=MIN_TIME_LIMIT, le=MAX_TIME_LIMIT, alias='timeLimit')
    question_ids: List[int] = Field(min_length=1, max_length=MAX_SUBMITTED_ANSWERS, alias='questionIds')

    @field_validator('question_ids')
    @classmethod
    def unique_question_ids(cls, value):
        if len(set(value)) != len(value):
            raise ValueError('a question may appear only once per exam')
        return value


class ExamUpdate(RequestModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=255)
    description: Optional[str] = None
    category: Optional[Category] = None
    question_types: Optional[List[QuestionType]] = Field(default=None, alias='questionTypes')
    difficulty: Optional[Difficulty] = None
    time_limit: Optional[int] = Field(default=None, ge=MIN_TIME_LIMIT, le=MAX_TIME_LIMIT, alias='timeLimit')
    question_ids: Optional[List[int]] = Field(
        default=None, min_length=1, max_length=MAX_SUBMITTED_ANSWERS, alias='questionIds'
    )

    @field_validator('question_ids')
    @classmethod
    def unique_question_ids(cls, value):
        if value is not None and len(set(value)) != len(value):
            raise ValueError('a question may appear only once per exam')
        return value


class RoleUpdate(RequestModel):
    role: Role


class AdminUserUpdate(RequestModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)


class AdminUserQuery(RequestModel):
    search: Optional[str] = None
    role: Optional[Role] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
