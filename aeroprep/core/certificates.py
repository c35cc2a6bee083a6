"""
Certificate issuing and verification
Certificates are derived from completed exam attempts, never stored
"""
import logging

from .database import serialize_timestamp, utc_now
from .errors import (
    AuthorizationError, CertificateNotFoundError, InvalidCertificateFormatError, ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = 'ET-'
NUMBER_WIDTH = 8
MAX_ATTEMPT_ID = 10 ** NUMBER_WIDTH - 1

# Lower bound of each grade, highest first
GRADE_STEPS = (
    (95, 'A+'),
    (90, 'A'),
    (85, 'A-'),
    (80, 'B+'),
    (75, 'B'),
    (70, 'B-'),
    (65, 'C+'),
    (60, 'C'),
)
FAILING_GRADE = 'F'


def encode_certificate_number(attempt_id, prefix=DEFAULT_PREFIX):
    """ET-00000042 for attempt 42"""
    if not isinstance(attempt_id, int) or isinstance(attempt_id, bool):
        raise ValueError('attempt id must be an integer')
    if attempt_id < 0 or attempt_id > MAX_ATTEMPT_ID:
        raise ValueError(f'attempt id must be between 0 and {MAX_ATTEMPT_ID}')
    return f'{prefix}{attempt_id:0{NUMBER_WIDTH}d}'


def decode_certificate_number(certificate_number, prefix=DEFAULT_PREFIX):
    """Recover the attempt id from a certificate number.

    Raises InvalidCertificateFormatError when the prefix is missing or the
    remainder is not 1-8 decimal digits.
    """
    if not isinstance(certificate_number, str):
        raise InvalidCertificateFormatError()
    value = certificate_number.strip()
    if not value.upper().startswith(prefix.upper()):
        raise InvalidCertificateFormatError()

    digits = value[len(prefix):]
    if not digits or len(digits) > NUMBER_WIDTH or not digits.isascii() or not digits.isdigit():
        raise InvalidCertificateFormatError()
    # int() drops the zero padding; an all-zero body is attempt 0
    return int(digits)


def grade_for_score(score):
    """Letter grade for a percentage score"""
    score = score or 0
    for threshold, letter in GRADE_STEPS:
        if score >= threshold:
            return letter
    return FAILING_GRADE


class CertificateIssuer:
    def __init__(self, db_manager, prefix=DEFAULT_PREFIX, min_score=0):
        self.db = db_manager
        self.prefix = prefix
        self.min_score = min_score

    def _completed_attempt(self, attempt_id):
        rows = self.db.execute_query("""
            SELECT
                a.id, a.user_id, a.score, a.completed_at,
                e.title AS exam_title,
                e.category AS exam_category,
                e.difficulty AS exam_difficulty,
                u.name AS user_name,
                u.email AS user_email
            FROM user_exam_attempts a
            LEFT JOIN exams e ON a.exam_id = e.id
            LEFT JOIN users u ON a.user_id = u.id
            WHERE a.id = :attempt_id AND a.completed_at IS NOT NULL
        """, {'attempt_id': attempt_id})
        return rows[0] if rows else None

    def mint(self, attempt_id, user_id, is_admin=False):
        """Certificate data for one of the caller's completed attempts"""
        attempt = self._completed_attempt(attempt_id)
        if attempt is None:
            raise CertificateNotFoundError('Certificate not found')
        if attempt['user_id'] != user_id and not is_admin:
            raise AuthorizationError('You can only view your own certificates')
        score = attempt['score'] or 0
        if score < self.min_score:
            raise ValidationError(f'A score of at least {self.min_score}% is required for a certificate')

        return {
            'id': attempt['id'],
            'certificateNumber': encode_certificate_number(attempt['id'], self.prefix),
            'examTitle': attempt['exam_title'],
            'examCategory': attempt['exam_category'],
            'examDifficulty': attempt['exam_difficulty'],
            'studentName': attempt['user_name'],
            'studentEmail': attempt['user_email'],
            'score': score,
            'grade': grade_for_score(score),
            'completedAt': serialize_timestamp(attempt['completed_at']),
            'issuedAt': serialize_timestamp(utc_now()),
        }

    def verify(self, certificate_number):
        """Public verification; valid only for an existing completed attempt"""
        try:
            attempt_id = decode_certificate_number(certificate_number, self.prefix)
        except InvalidCertificateFormatError:
            raise InvalidCertificateFormatError(valid=False) from None
        attempt = self._completed_attempt(attempt_id)
        if attempt is None:
            logger.info(f"Certificate verification failed: {certificate_number}")
            raise CertificateNotFoundError(valid=False)

        logger.info(f"Certificate verified: {certificate_number}")
        return {
            'certificateNumber': encode_certificate_number(attempt_id, self.prefix),
            'studentName': attempt['user_name'],
            'examTitle': attempt['exam_title'],
            'examCategory': attempt['exam_category'],
            'score': attempt['score'],
            'grade': grade_for_score(attempt['score']),
            'completedAt': serialize_timestamp(attempt['completed_at']),
            'verifiedAt': serialize_timestamp(utc_now()),
        }
