"""
Submission workflow
Grades an answer map and records the attempt and its ledger rows atomically
"""
import hashlib
import json
import logging
from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from .database import serialize_timestamp, utc_now
from .errors import ConflictError, NotFoundError
from .grading import grade
from .session_state import AttemptSession

logger = logging.getLogger(__name__)


def answers_fingerprint(answers):
    """Stable digest of an answer map, independent of key order and key type"""
    canonical = json.dumps({str(int(key)): value for key, value in answers.items()}, sort_keys=True)
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


class SubmissionService:
    def __init__(self, db_manager, question_manager, exam_manager):
        self.db = db_manager
        self.question_manager = question_manager
        self.exam_manager = exam_manager

    def _stored_result(self, user_id, idempotency_key, scope, fingerprint, executor=None):
        """Stored result for a key, or None; a key reused for other answers is a conflict"""
        db = executor or self.db
        rows = db.execute_query("""
            SELECT scope, fingerprint, result FROM submission_keys
            WHERE user_id = :user_id AND idempotency_key = :key
        """, {'user_id': user_id, 'key': idempotency_key})
        if not rows:
            return None
        if rows[0]['scope'] != scope or rows[0]['fingerprint'] != fingerprint:
            logger.warning(f"Idempotency key {idempotency_key!r} of user {user_id} reused for {scope}")
            raise ConflictError('Idempotency key was already used for a different submission')
        result = json.loads(rows[0]['result'])
        result['replayed'] = True
        return result

    def _record(self, tx, user_id, graded, completed_at, time_spent, exam_id=None):
        """Write the attempt (exams only) and one progress row per scored question"""
        attempt_id = None
        if exam_id is not None:
            started_at = completed_at - timedelta(seconds=time_spent or 0)
            rows = tx.execute_query("""
                INSERT INTO user_exam_attempts (user_id, exam_id, score, started_at, completed_at)
                VALUES (:user_id, :exam_id, :score, :started_at, :completed_at)
                RETURNING id
            """, {
                'user_id': user_id,
                'exam_id': exam_id,
                'score': graded.percentage,
                'started_at': tx.timestamp(started_at),
                'completed_at': tx.timestamp(completed_at),
            })
            attempt_id = rows[0]['id']

        for question in graded.questions:
            tx.execute_query("""
                INSERT INTO user_progress (user_id, question_id, is_correct, attempted_at)
                VALUES (:user_id, :question_id, :is_correct, :attempted_at)
            """, {
                'user_id': user_id,
                'question_id': question.question_id,
                'is_correct': question.is_correct,
                'attempted_at': tx.timestamp(completed_at),
            })
        return attempt_id

    def _submit(self, user_id, answers, load_questions, time_spent, idempotency_key,
                exam_id=None, session_id=None):
        scope = f"exam:{exam_id}" if exam_id is not None else 'practice'
        fingerprint = answers_fingerprint(answers)
        if idempotency_key:
            stored = self._stored_result(user_id, idempotency_key, scope, fingerprint)
            if stored is not None:
                logger.info(f"Replayed submission {idempotency_key!r} for user {user_id}")
                return stored

        try:
            with self.db.transaction() as tx:
                graded = grade(answers, load_questions(tx))
                completed_at = utc_now()
                attempt_id = self._record(tx, user_id, graded, completed_at, time_spent, exam_id)

                result = graded.to_dict()
                result['completedAt'] = serialize_timestamp(completed_at)
                result['timeSpent'] = time_spent
                if exam_id is not None:
                    result['attemptId'] = attempt_id
                    result['examId'] = exam_id
                else:
                    result['sessionId'] = session_id

                if idempotency_key:
                    tx.execute_query("""
                        INSERT INTO submission_keys
                            (user_id, idempotency_key, scope, fingerprint, attempt_id, result, created_at)
                        VALUES (:user_id, :key, :scope, :fingerprint, :attempt_id, :result, :created_at)
                    """, {
                        'user_id': user_id,
                        'key': idempotency_key,
                        'scope': scope,
                        'fingerprint': fingerprint,
                        'attempt_id': attempt_id,
                        'result': json.dumps(result),
                        'created_at': tx.timestamp(completed_at),
                    })
        except IntegrityError:
            # A concurrent request with the same key committed first
            if idempotency_key:
                stored = self._stored_result(user_id, idempotency_key, scope, fingerprint)
                if stored is not None:
                    return stored
            raise

        kind = f"exam {exam_id}" if exam_id is not None else 'practice'
        logger.info(
            f"User {user_id} submitted {kind}: "
            f"{graded.correct}/{graded.total} ({graded.percentage}%)"
        )
        result['replayed'] = False
        return result

    def submit_practice(self, user_id, answers, time_spent=None, session_id=None,
                        idempotency_key=None):
        """Grade a practice batch against the questions its answers reference"""
        def load_questions(tx):
            return self.question_manager.get_questions_by_ids(answers.keys(), executor=tx)

        return self._submit(user_id, answers, load_questions, time_spent, idempotency_key,
                            session_id=session_id)

    def submit_exam(self, user_id, exam_id, answers, time_spent=None, idempotency_key=None):
        """Grade an exam attempt against the exam's ordered questions"""
        def load_questions(tx):
            if self.exam_manager.find_exam(exam_id, executor=tx) is None:
                raise NotFoundError('Exam not found')
            return self.exam_manager.get_exam_questions(exam_id, executor=tx)

        return self._submit(user_id, answers, load_questions, time_spent, idempotency_key,
                            exam_id=exam_id)

    def open_exam_session(self, user_id, exam_id, idempotency_key=None):
        """In-progress session for an exam that submits through submit_exam"""
        exam = self.exam_manager.find_exam(exam_id)
        if exam is None:
            raise NotFoundError('Exam not found')

        def handler(answers):
            elapsed = int((utc_now() - session.started_at).total_seconds())
            return self.submit_exam(user_id, exam_id, answers, time_spent=elapsed,
                                    idempotency_key=idempotency_key)

        session = AttemptSession(
            self.exam_manager.get_exam_questions(exam_id),
            time_limit_minutes=exam.get('time_limit'),
            submit_handler=handler,
        )
        return session
