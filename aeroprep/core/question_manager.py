"""
Question bank management
Question-set sampling for practice plus the admin CRUD operations
"""
import json
import logging
import math

from .constants import (
    CATEGORIES, CATEGORY_NAMES, DIFFICULTIES, QUESTION_TYPE_DESCRIPTIONS, QUESTION_TYPE_NAMES, QUESTION_TYPES,
    require_member,
)
from .database import in_clause, load_json_list, serialize_timestamp, utc_now
from .errors import NotFoundError, ValidationError
from .exam_manager import renumber_exam_questions
from .schemas import resolve_answer_key

logger = logging.getLogger(__name__)

QUESTION_COLUMNS = (
    'id, question_text, options, correct_answer, explanation, image_url, '
    'question_type, category, difficulty, created_by, created_at, updated_at'
)
REQUIRED_COLUMNS = ('question_text', 'options', 'correct_answer', 'question_type', 'category', 'difficulty')


def serialize_question(question, include_answer=True):
    """Client view of a question; practice sessions never see the key"""
    data = {
        'id': question['id'],
        'questionText': question['question_text'],
        'options': question['options'],
        'imageUrl': question.get('image_url'),
        'questionType': question['question_type'],
        'category': question['category'],
        'difficulty': question['difficulty'],
    }
    if include_answer:
        data['correctAnswer'] = question['correct_answer']
        data['explanation'] = question.get('explanation')
        data['createdAt'] = serialize_timestamp(question.get('created_at'))
    return data


def describe_subject(category, question_type, question_count=0):
    """Practice subject: one category paired with one question type"""
    return {
        'id': f'{category}-{question_type}',
        'name': f'{QUESTION_TYPE_NAMES[question_type]} - {CATEGORY_NAMES[category]}',
        'description': f'{QUESTION_TYPE_DESCRIPTIONS[question_type]} for {category.upper()} preparation',
        'category': category,
        'type': question_type,
        'questionCount': question_count,
    }


def parse_subject_id(subject_id):
    """'pilot-math' -> ('pilot', 'math')"""
    category, _, question_type = subject_id.partition('-')
    if not category or not question_type:
        raise ValidationError('Invalid subject ID format')
    if category not in CATEGORIES or question_type not in QUESTION_TYPES:
        raise ValidationError('Invalid category or question type')
    return category, question_type


class QuestionManager:
    """Question bank access (PostgreSQL/SQLite)"""

    def __init__(self, db_manager, default_limit=10, max_limit=50):
        self.db_manager = db_manager
        self.default_limit = default_limit
        self.max_limit = max_limit

    serialize = staticmethod(serialize_question)

    def _row_to_question(self, row):
        question = dict(row)
        question['options'] = load_json_list(question.get('options'))
        return question

    def get_question(self, question_id, executor=None):
        db = executor or self.db_manager
        result = db.execute_query(
            f'SELECT {QUESTION_COLUMNS} FROM questions WHERE id = :id', {'id': question_id}
        )
        return self._row_to_question(result[0]) if result else None

    def get_questions_by_ids(self, question_ids, executor=None):
        """Questions for the given ids in the given order; unknown ids are left out"""
        question_ids = list(question_ids)
        if not question_ids:
            return []
        db = executor or self.db_manager
        placeholders, params = in_clause('ids', question_ids)
        rows = db.execute_query(
            f'SELECT {QUESTION_COLUMNS} FROM questions WHERE id IN ({placeholders})', params
        )
        by_id = {row['id']: self._row_to_question(row) for row in rows}
        return [by_id[question_id] for question_id in question_ids if question_id in by_id]

    def get_question_set(self, category, question_type=None, difficulty=None, limit=None):
        """Random batch of questions matching the filters"""
        require_member(category, CATEGORIES, 'category')
        require_member(question_type, QUESTION_TYPES, 'question type')
        require_member(difficulty, DIFFICULTIES, 'difficulty')

        conditions = ['category = :category']
        params = {'category': category}
        if question_type:
            conditions.append('question_type = :question_type')
            params['question_type'] = question_type
        if difficulty:
            conditions.append('difficulty = :difficulty')
            params['difficulty'] = difficulty
        params['limit'] = min(limit or self.default_limit, self.max_limit)

        rows = self.db_manager.execute_query(f"""
            SELECT {QUESTION_COLUMNS}
            FROM questions
            WHERE {' AND '.join(conditions)}
            ORDER BY RANDOM()
            LIMIT :limit
        """, params)

        if not rows:
            raise NotFoundError('No questions found matching the criteria')
        return [self._row_to_question(row) for row in rows]

    def list_questions(self, category=None, question_type=None, difficulty=None,
                       search=None, page=1, limit=10):
        """Paginated question list for the admin screens"""
        conditions = []
        params = {}
        if category:
            conditions.append('category = :category')
            params['category'] = require_member(category, CATEGORIES, 'category')
        if question_type:
            conditions.append('question_type = :question_type')
            params['question_type'] = require_member(question_type, QUESTION_TYPES, 'question type')
        if difficulty:
            conditions.append('difficulty = :difficulty')
            params['difficulty'] = require_member(difficulty, DIFFICULTIES, 'difficulty')
        if search:
            conditions.append('question_text LIKE :search')
            params['search'] = f'%{search}%'
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ''

        total = self.db_manager.execute_query(
            f'SELECT COUNT(*) AS count FROM questions {where}', params
        )[0]['count']
        rows = self.db_manager.execute_query(f"""
            SELECT {QUESTION_COLUMNS}
            FROM questions
            {where}
            ORDER BY created_at DESC, id DESC
            LIMIT :limit OFFSET :offset
        """, dict(params, limit=limit, offset=(page - 1) * limit))

        return {
            'questions': [self._row_to_question(row) for row in rows],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'totalPages': math.ceil(total / limit) if limit else 0,
            },
        }

    def list_subjects(self, category=None, search=None):
        """Subjects that have questions, with their question counts"""
        where = ''
        params = {}
        if category:
            where = 'WHERE category = :category'
            params['category'] = require_member(category, CATEGORIES, 'category')

        rows = self.db_manager.execute_query(f"""
            SELECT category, question_type, COUNT(*) AS question_count
            FROM questions
            {where}
            GROUP BY category, question_type
            ORDER BY question_type, category
        """, params)

        subjects = [
            describe_subject(row['category'], row['question_type'], row['question_count'])
            for row in rows
        ]
        if search:
            needle = search.lower()
            subjects = [
                subject for subject in subjects
                if needle in subject['name'].lower() or needle in subject['description'].lower()
            ]
        return subjects

    def count_questions(self):
        result = self.db_manager.execute_query('SELECT COUNT(*) AS count FROM questions')
        return result[0]['count'] if result else 0

    def create_question(self, data, created_by=None):
        """Insert a validated QuestionCreate; returns the stored question"""
        now = self.db_manager.timestamp(utc_now())
        rows = self.db_manager.execute_query("""
            INSERT INTO questions (
                question_text, options, correct_answer, explanation, image_url,
                question_type, category, difficulty, created_by, created_at, updated_at
            ) VALUES (
                :question_text, :options, :correct_answer, :explanation, :image_url,
                :question_type, :category, :difficulty, :created_by, :now, :now
            )
            RETURNING id
        """, {
            'question_text': data.question_text,
            'options': json.dumps(data.options, ensure_ascii=False),
            'correct_answer': data.correct_answer,
            'explanation': data.explanation,
            'image_url': data.image_url or None,
            'question_type': data.question_type,
            'category': data.category,
            'difficulty': data.difficulty,
            'created_by': created_by,
            'now': now,
        })
        question_id = rows[0]['id']
        logger.info(f"Question {question_id} created by user {created_by}")
        return self.get_question(question_id)

    def update_question(self, question_id, data):
        """Apply a QuestionUpdate.

        Progress entries already written keep their frozen correctness; an
        edited answer key only affects future submissions.
        """
        existing = self.get_question(question_id)
        if existing is None:
            raise NotFoundError('Question not found')

        changes = data.model_dump(exclude_unset=True)
        for column in REQUIRED_COLUMNS:
            if column in changes and changes[column] is None:
                raise ValidationError(f'{column} cannot be cleared')
        options = changes.get('options', existing['options'])
        if 'options' in changes or 'correct_answer' in changes:
            correct_answer = changes.get('correct_answer', existing['correct_answer'])
            try:
                changes['correct_answer'] = resolve_answer_key(correct_answer, options)
            except ValueError as e:
                raise ValidationError(str(e))
        if 'options' in changes:
            if any(not option.strip() for option in options):
                raise ValidationError('options must not be blank')
            changes['options'] = json.dumps(options, ensure_ascii=False)

        if not changes:
            return existing

        assignments = ', '.join(f'{column} = :{column}' for column in changes)
        changes['id'] = question_id
        changes['updated_at'] = self.db_manager.timestamp(utc_now())
        self.db_manager.execute_query(
            f'UPDATE questions SET {assignments}, updated_at = :updated_at WHERE id = :id', changes
        )
        logger.info(f"Question {question_id} updated")
        return self.get_question(question_id)

    def delete_question(self, question_id):
        """Delete a question and close the gap it leaves in every exam"""
        with self.db_manager.transaction() as tx:
            if not tx.execute_query('SELECT id FROM questions WHERE id = :id', {'id': question_id}):
                raise NotFoundError('Question not found')

            affected = tx.execute_query(
                'SELECT DISTINCT exam_id FROM exam_questions WHERE question_id = :id', {'id': question_id}
            )
            tx.execute_query('DELETE FROM exam_questions WHERE question_id = :id', {'id': question_id})
            for row in affected:
                renumber_exam_questions(tx, row['exam_id'])
            tx.execute_query('DELETE FROM questions WHERE id = :id', {'id': question_id})

        logger.info(f"Question {question_id} deleted ({len(affected)} exams renumbered)")
