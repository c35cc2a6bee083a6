import pytest

from aeroprep.core.certificates import (
    decode_certificate_number, encode_certificate_number, grade_for_score,
)
from aeroprep.core.errors import (
    AuthorizationError, CertificateNotFoundError, InvalidCertificateFormatError, ValidationError,
)
from conftest import seed_user


def test_encode_pads_to_eight_digits():
    assert encode_certificate_number(42) == "ET-00000042"
    assert encode_certificate_number(0) == "ET-00000000"


@pytest.mark.parametrize("attempt_id", [0, 1, 42, 1234567, 99999999])
def test_round_trip(attempt_id):
    assert decode_certificate_number(encode_certificate_number(attempt_id)) == attempt_id


@pytest.mark.parametrize("attempt_id", [-1, 100000000, "7", None])
def test_encode_rejects_out_of_range(attempt_id):
    with pytest.raises(ValueError):
        encode_certificate_number(attempt_id)


def test_decode_is_lenient_about_case_and_whitespace():
    assert decode_certificate_number("  et-00000042 ") == 42
    assert decode_certificate_number("ET-42") == 42


@pytest.mark.parametrize("number", [
    "ET-", "ET-abc", "ET-12a4", "00000042", "XX-00000042", "ET-123456789", "ET--0000042", "ET-٣٤",
])
def test_decode_invalid_format(number):
    with pytest.raises(InvalidCertificateFormatError):
        decode_certificate_number(number)


@pytest.mark.parametrize("score,grade", [
    (100, "A+"), (95, "A+"), (92, "A"), (90, "A"), (85, "A-"), (80, "B+"),
    (75, "B"), (70, "B-"), (65, "C+"), (60, "C"), (58, "F"), (0, "F"),
])
def test_grade_staircase(score, grade):
    assert grade_for_score(score) == grade


def test_grades_never_improve_as_score_drops():
    order = ["A+", "A", "A-", "B+", "B", "B-", "C+", "C", "F"]
    ranks = [order.index(grade_for_score(score)) for score in range(100, -1, -1)]
    assert ranks == sorted(ranks)


def _attempt(db, user_id, score, completed=True):
    rows = db.execute_query(
        """
        INSERT INTO user_exam_attempts (user_id, exam_id, score, completed_at)
        VALUES (:user_id, NULL, :score, :completed_at)
        RETURNING id
        """,
        {"user_id": user_id, "score": score, "completed_at": "2026-01-10 09:30:00" if completed else None},
    )
    return rows[0]["id"]


def test_verify_requires_completed_attempt(app):
    db = app.db_manager
    user_id = seed_user(db, "Carol", "carol@aeroprep.io")
    done = _attempt(db, user_id, 92)
    pending = _attempt(db, user_id, None, completed=False)
    issuer = app.certificate_issuer

    verified = issuer.verify(encode_certificate_number(done))
    assert verified["studentName"] == "Carol"
    assert verified["grade"] == "A"
    assert verified["certificateNumber"] == encode_certificate_number(done)

    with pytest.raises(CertificateNotFoundError):
        issuer.verify(encode_certificate_number(pending))
    with pytest.raises(CertificateNotFoundError):
        issuer.verify("ET-99999999")


def test_mint_checks_owner_and_minimum_score(app):
    db = app.db_manager
    owner = seed_user(db, "Dan", "dan@aeroprep.io")
    other = seed_user(db, "Eve", "eve@aeroprep.io")
    attempt_id = _attempt(db, owner, 58)
    issuer = app.certificate_issuer

    certificate = issuer.mint(attempt_id, owner)
    assert certificate["certificateNumber"] == encode_certificate_number(attempt_id)
    assert certificate["grade"] == "F"

    with pytest.raises(AuthorizationError):
        issuer.mint(attempt_id, other)
    assert issuer.mint(attempt_id, other, is_admin=True)["studentName"] == "Dan"

    issuer.min_score = 60
    with pytest.raises(ValidationError):
        issuer.mint(attempt_id, owner)
