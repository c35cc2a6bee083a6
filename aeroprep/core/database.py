"""
Database access (PostgreSQL/SQLite)
Schema definition, query execution and transactions
"""
import json
import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, MetaData, String,
    Table, Text, UniqueConstraint, create_engine, text,
)

logger = logging.getLogger(__name__)

metadata = MetaData()

users = Table(
    'users', metadata,
    Column('id', Integer, primary_key=True),
    Column('name', String(100), nullable=False),
    Column('email', String(255), nullable=False, unique=True),
    Column('password_hash', String(255), nullable=False),
    Column('role', String(10), nullable=False, server_default='user'),
    Column('created_at', DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP')),
)

questions = Table(
    'questions', metadata,
    Column('id', Integer, primary_key=True),
    Column('question_text', Text, nullable=False),
    Column('options', Text, nullable=False),  # JSON list
    Column('correct_answer', String(255), nullable=False),
    Column('explanation', Text),
    Column('image_url', String(500)),
    Column('question_type', String(20), nullable=False),
    Column('category', String(20), nullable=False),
    Column('difficulty', String(10), nullable=False, server_default='medium'),
    Column('created_by', Integer, ForeignKey('users.id')),
    Column('created_at', DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP')),
    Column('updated_at', DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP')),
    Index('idx_questions_category', 'category', 'question_type', 'difficulty'),
)

exams = Table(
    'exams', metadata,
    Column('id', Integer, primary_key=True),
    Column('title', String(255), nullable=False),
    Column('description', Text),
    Column('category', String(20), nullable=False),
    Column('question_types', Text),  # JSON list
    Column('difficulty', String(10)),
    Column('time_limit', Integer),  # minutes
    Column('created_at', DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP')),
    Column('updated_at', DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP')),
)

exam_questions = Table(
    'exam_questions', metadata,
    Column('id', Integer, primary_key=True),
    Column('exam_id', Integer, ForeignKey('exams.id', ondelete='CASCADE'), nullable=False),
    Column('question_id', Integer, ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
    Column('position', Integer, nullable=False),
    UniqueConstraint('exam_id', 'position', name='uq_exam_questions_position'),
)

# exam_id and question_id below carry no foreign keys: attempt history and
# the progress ledger outlive the exams and questions they reference.
user_exam_attempts = Table(
    'user_exam_attempts', metadata,
    Column('id', Integer, primary_key=True),
    Column('user_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('exam_id', Integer),
    Column('score', Integer),
    Column('started_at', DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP')),
    Column('completed_at', DateTime),
    Index('idx_attempts_user', 'user_id'),
)

user_progress = Table(
    'user_progress', metadata,
    Column('id', Integer, primary_key=True),
    Column('user_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('question_id', Integer, nullable=False),
    Column('is_correct', Boolean, nullable=False),
    Column('attempted_at', DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP')),
    Index('idx_progress_user', 'user_id', 'attempted_at'),
)

submission_keys = Table(
    'submission_keys', metadata,
    Column('id', Integer, primary_key=True),
    Column('user_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('idempotency_key', String(128), nullable=False),
    Column('scope', String(32), nullable=False),  # 'practice' or 'exam:<id>'
    Column('fingerprint', String(64), nullable=False),  # sha256 of the answer map
    Column('attempt_id', Integer),
    Column('result', Text, nullable=False),  # JSON response body
    Column('created_at', DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP')),
    UniqueConstraint('user_id', 'idempotency_key', name='uq_submission_keys_user_key'),
)


def utc_now():
    """Naive UTC timestamp, the form every table stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def serialize_timestamp(value):
    """ISO-8601 text for a timestamp read back from either backend"""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    # SQLite hands timestamps back as 'YYYY-MM-DD HH:MM:SS[.ffffff]'
    return str(value).replace(' ', 'T', 1)


def load_json_list(value):
    """Decode a JSON list column; empty or missing values become []"""
    if not value:
        return []
    if isinstance(value, list):
        return value
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        logger.warning(f"Undecodable JSON list column: {value!r}")
        return []
    return decoded if isinstance(decoded, list) else []


def _run(connection, query, params):
    result = connection.execute(text(query), params or {})
    if result.returns_rows:
        return [dict(row._mapping) for row in result]
    return result.rowcount


class TransactionExecutor:
    """Runs queries inside one open transaction"""

    def __init__(self, db_manager, connection):
        self.db_type = db_manager.db_type
        self.connection = connection
        self._db_manager = db_manager

    def execute_query(self, query, params=None):
        return _run(self.connection, query, params)

    def timestamp(self, value):
        return self._db_manager.timestamp(value)


class DatabaseManager:
    def __init__(self, database_url, echo=False):
        self.database_url = database_url
        self.db_type = 'postgresql' if database_url.startswith('postgresql') else 'sqlite'
        self.engine = create_engine(database_url, echo=echo, pool_pre_ping=True)

    def execute_query(self, query, params=None):
        """Run a single statement in its own transaction.

        Returns a list of dicts for statements producing rows
        (SELECT / WITH / RETURNING) and the affected rowcount otherwise.
        """
        with self.engine.begin() as connection:
            return _run(connection, query, params)

    @contextmanager
    def transaction(self):
        """Group several statements into one atomic unit.

        Everything executed through the yielded executor commits together
        when the block exits normally and rolls back if it raises.
        """
        with self.engine.begin() as connection:
            yield TransactionExecutor(self, connection)

    def timestamp(self, value):
        """Bind value for a timestamp parameter.

        SQLite compares timestamps as text, so they are bound in the same
        'YYYY-MM-DD HH:MM:SS' shape CURRENT_TIMESTAMP produces.
        """
        if value is None or self.db_type != 'sqlite':
            return value
        return value.strftime('%Y-%m-%d %H:%M:%S')

    def init_database(self):
        metadata.create_all(self.engine)
        logger.info(f"Database schema ready ({self.db_type})")

    def dispose(self):
        self.engine.dispose()


def in_clause(name, values):
    """Named placeholders for an IN (...) list: (':ids_0, :ids_1', params)"""
    params = {f'{name}_{index}': value for index, value in enumerate(values)}
    return ', '.join(f':{key}' for key in params), params
