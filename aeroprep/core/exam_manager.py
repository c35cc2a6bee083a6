"""
Exam definitions
Exams own an ordered question list stored in exam_questions
"""
import json
import logging
import math

from .constants import CATEGORIES, require_member
from .database import in_clause, load_json_list, serialize_timestamp, utc_now
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

EXAM_COLUMNS = (
    'e.id, e.title, e.description, e.category, e.question_types, e.difficulty, '
    'e.time_limit, e.created_at, e.updated_at'
)


def renumber_exam_questions(executor, exam_id):
    """Close gaps so positions run 1..n in their current order"""
    rows = executor.execute_query(
        'SELECT id, position FROM exam_questions WHERE exam_id = :exam_id ORDER BY position',
        {'exam_id': exam_id},
    )
    # Ascending rewrite never collides with the (exam_id, position) constraint
    for position, row in enumerate(rows, start=1):
        if row['position'] != position:
            executor.execute_query(
                'UPDATE exam_questions SET position = :position WHERE id = :id',
                {'position': position, 'id': row['id']},
            )


def write_exam_questions(executor, exam_id, question_ids):
    """Replace an exam's ordering with question_ids at positions 1..n"""
    executor.execute_query('DELETE FROM exam_questions WHERE exam_id = :exam_id', {'exam_id': exam_id})
    for position, question_id in enumerate(question_ids, start=1):
        executor.execute_query("""
            INSERT INTO exam_questions (exam_id, question_id, position)
            VALUES (:exam_id, :question_id, :position)
        """, {'exam_id': exam_id, 'question_id': question_id, 'position': position})


def serialize_exam(exam):
    return {
        'id': exam['id'],
        'title': exam['title'],
        'description': exam.get('description'),
        'category': exam['category'],
        'questionTypes': exam['question_types'] or None,
        'difficulty': exam.get('difficulty'),
        'timeLimit': exam.get('time_limit'),
        'questionCount': exam.get('question_count'),
        'createdAt': serialize_timestamp(exam.get('created_at')),
    }


class ExamManager:
    def __init__(self, db_manager, question_manager):
        self.db_manager = db_manager
        self.question_manager = question_manager

    def _row_to_exam(self, row):
        exam = dict(row)
        exam['question_types'] = load_json_list(exam.get('question_types'))
        return exam

    def list_exams(self, category=None):
        """All exams, newest first, with their question counts"""
        where = ''
        params = {}
        if category:
            where = 'WHERE e.category = :category'
            params['category'] = require_member(category, CATEGORIES, 'category')

        rows = self.db_manager.execute_query(f"""
            SELECT {EXAM_COLUMNS}, COUNT(eq.id) AS question_count
            FROM exams e
            LEFT JOIN exam_questions eq ON eq.exam_id = e.id
            {where}
            GROUP BY {EXAM_COLUMNS}
            ORDER BY e.created_at DESC, e.id DESC
        """, params)
        return [self._row_to_exam(row) for row in rows]

    def list_exams_paginated(self, category=None, search=None, page=1, limit=10):
        conditions = []
        params = {}
        if category:
            conditions.append('e.category = :category')
            params['category'] = require_member(category, CATEGORIES, 'category')
        if search:
            conditions.append('e.title LIKE :search')
            params['search'] = f'%{search}%'
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ''

        total = self.db_manager.execute_query(
            f'SELECT COUNT(*) AS count FROM exams e {where}', params
        )[0]['count']
        rows = self.db_manager.execute_query(f"""
            SELECT {EXAM_COLUMNS}, COUNT(eq.id) AS question_count
            FROM exams e
            LEFT JOIN exam_questions eq ON eq.exam_id = e.id
            {where}
            GROUP BY {EXAM_COLUMNS}
            ORDER BY e.created_at DESC, e.id DESC
            LIMIT :limit OFFSET :offset
        """, dict(params, limit=limit, offset=(page - 1) * limit))

        return {
            'exams': [self._row_to_exam(row) for row in rows],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'totalPages': math.ceil(total / limit) if limit else 0,
            },
        }

    def find_exam(self, exam_id, executor=None):
        db = executor or self.db_manager
        rows = db.execute_query(f"""
            SELECT {EXAM_COLUMNS}, COUNT(eq.id) AS question_count
            FROM exams e
            LEFT JOIN exam_questions eq ON eq.exam_id = e.id
            WHERE e.id = :exam_id
            GROUP BY {EXAM_COLUMNS}
        """, {'exam_id': exam_id})
        return self._row_to_exam(rows[0]) if rows else None

    def get_exam(self, exam_id, include_answers=False):
        """Exam with its ordered questions; answer keys only when asked for"""
        exam = self.find_exam(exam_id)
        if exam is None:
            raise NotFoundError('Exam not found')
        questions = []
        for question in self.get_exam_questions(exam_id):
            data = self.question_manager.serialize(question, include_answer=include_answers)
            data['position'] = question['position']
            questions.append(data)
        return {'exam': serialize_exam(exam), 'questions': questions}

    def get_exam_questions(self, exam_id, executor=None):
        """The exam's questions in position order"""
        db = executor or self.db_manager
        rows = db.execute_query("""
            SELECT
                q.id, q.question_text, q.options, q.correct_answer, q.explanation,
                q.image_url, q.question_type, q.category, q.difficulty,
                q.created_at, eq.position
            FROM exam_questions eq
            JOIN questions q ON eq.question_id = q.id
            WHERE eq.exam_id = :exam_id
            ORDER BY eq.position
        """, {'exam_id': exam_id})
        questions = []
        for row in rows:
            question = dict(row)
            question['options'] = load_json_list(question.get('options'))
            questions.append(question)
        return questions

    def _require_questions(self, executor, question_ids):
        placeholders, params = in_clause('ids', question_ids)
        found = executor.execute_query(
            f'SELECT id FROM questions WHERE id IN ({placeholders})', params
        )
        missing = set(question_ids) - {row['id'] for row in found}
        if missing:
            raise ValidationError('Some questions do not exist', missingQuestionIds=sorted(missing))

    def create_exam(self, data):
        """Insert a validated ExamCreate together with its ordering"""
        now = self.db_manager.timestamp(utc_now())
        with self.db_manager.transaction() as tx:
            self._require_questions(tx, data.question_ids)
            rows = tx.execute_query("""
                INSERT INTO exams (
                    title, description, category, question_types, difficulty,
                    time_limit, created_at, updated_at
                ) VALUES (
                    :title, :description, :category, :question_types, :difficulty,
                    :time_limit, :now, :now
                )
                RETURNING id
            """, {
                'title': data.title,
                'description': data.description,
                'category': data.category,
                'question_types': json.dumps(data.question_types) if data.question_types else None,
                'difficulty': data.difficulty,
                'time_limit': data.time_limit,
                'now': now,
            })
            exam_id = rows[0]['id']
            write_exam_questions(tx, exam_id, data.question_ids)

        logger.info(f"Exam {exam_id} created with {len(data.question_ids)} questions")
        return self.find_exam(exam_id)

    def update_exam(self, exam_id, data):
        changes = data.model_dump(exclude_unset=True)
        question_ids = changes.pop('question_ids', None)
        for column in ('title', 'category'):
            if column in changes and changes[column] is None:
                raise ValidationError(f'{column} cannot be cleared')
        if 'question_types' in changes:
            question_types = changes['question_types']
            changes['question_types'] = json.dumps(question_types) if question_types else None

        with self.db_manager.transaction() as tx:
            if not tx.execute_query('SELECT id FROM exams WHERE id = :id', {'id': exam_id}):
                raise NotFoundError('Exam not found')

            assignments = ''.join(f'{column} = :{column}, ' for column in changes)
            tx.execute_query(
                f'UPDATE exams SET {assignments}updated_at = :updated_at WHERE id = :id',
                dict(changes, id=exam_id, updated_at=self.db_manager.timestamp(utc_now())),
            )
            if question_ids is not None:
                self._require_questions(tx, question_ids)
                write_exam_questions(tx, exam_id, question_ids)

        logger.info(f"Exam {exam_id} updated")
        return self.find_exam(exam_id)

    def delete_exam(self, exam_id):
        """Delete an exam and its ordering; attempt history is kept"""
        with self.db_manager.transaction() as tx:
            if not tx.execute_query('SELECT id FROM exams WHERE id = :id', {'id': exam_id}):
                raise NotFoundError('Exam not found')
            tx.execute_query('DELETE FROM exam_questions WHERE exam_id = :id', {'id': exam_id})
            tx.execute_query('DELETE FROM exams WHERE id = :id', {'id': exam_id})
        logger.info(f"Exam {exam_id} deleted")
