import pytest

from aeroprep.core.errors import ConflictError, NoAnsweredQuestionsError, NotFoundError
from aeroprep.core.submission import SubmissionService
from conftest import seed_exam


def count(db, table):
    return db.execute_query(f"SELECT COUNT(*) AS count FROM {table}")[0]["count"]


def test_exam_submission_records_attempt_and_ledger(app, users, questions):
    exam_id = seed_exam(app.exam_manager, questions[:3])
    service = app.submission_service

    result = service.submit_exam(users["alice"], exam_id, {questions[0]: "B", questions[1]: "C"}, time_spent=90)

    assert result["score"] == {"correct": 1, "total": 2, "percentage": 50}
    assert [q["questionId"] for q in result["questions"]] == [questions[0], questions[1]]
    assert result["timeSpent"] == 90
    assert result["replayed"] is False
    attempt = app.db_manager.execute_query(
        "SELECT * FROM user_exam_attempts WHERE id = :id", {"id": result["attemptId"]}
    )[0]
    assert attempt["score"] == 50
    assert attempt["exam_id"] == exam_id
    assert attempt["completed_at"] is not None
    assert count(app.db_manager, "user_progress") == 2


def test_exam_submission_grades_against_exam_questions_only(app, users, questions):
    exam_id = seed_exam(app.exam_manager, questions[:2])

    result = app.submission_service.submit_exam(users["alice"], exam_id, {questions[0]: "B", questions[3]: "D"})

    assert result["score"]["total"] == 1
    assert count(app.db_manager, "user_progress") == 1


def test_practice_submission_writes_only_progress(app, users, questions):
    result = app.submission_service.submit_practice(
        users["bob"], {questions[0]: "B", questions[3]: "A", 777: "A"}, session_id="abc"
    )

    assert result["score"] == {"correct": 1, "total": 2, "percentage": 50}
    assert result["sessionId"] == "abc"
    assert "attemptId" not in result
    assert count(app.db_manager, "user_progress") == 2
    assert count(app.db_manager, "user_exam_attempts") == 0


def test_nothing_answered_writes_nothing(app, users, questions):
    exam_id = seed_exam(app.exam_manager, questions[:2])

    with pytest.raises(NoAnsweredQuestionsError):
        app.submission_service.submit_exam(users["alice"], exam_id, {questions[3]: "A"})
    with pytest.raises(NoAnsweredQuestionsError):
        app.submission_service.submit_practice(users["alice"], {})

    assert count(app.db_manager, "user_exam_attempts") == 0
    assert count(app.db_manager, "user_progress") == 0


def test_unknown_exam_is_not_found(app, users, questions):
    with pytest.raises(NotFoundError):
        app.submission_service.submit_exam(users["alice"], 4242, {questions[0]: "B"})


def test_failed_write_rolls_back_attempt_and_ledger(app, users, questions):
    class FailingService(SubmissionService):
        def _record(self, *args, **kwargs):
            super()._record(*args, **kwargs)
            raise RuntimeError("disk full")

    exam_id = seed_exam(app.exam_manager, questions[:2])
    service = FailingService(app.db_manager, app.question_manager, app.exam_manager)

    with pytest.raises(RuntimeError):
        service.submit_exam(users["alice"], exam_id, {questions[0]: "B", questions[1]: "A"})

    assert count(app.db_manager, "user_exam_attempts") == 0
    assert count(app.db_manager, "user_progress") == 0


def test_idempotent_replay_writes_nothing(app, users, questions):
    exam_id = seed_exam(app.exam_manager, questions[:2])
    service = app.submission_service
    answers = {questions[0]: "B", questions[1]: "A"}

    first = service.submit_exam(users["alice"], exam_id, answers, idempotency_key="retry-1")
    second = service.submit_exam(users["alice"], exam_id, answers, idempotency_key="retry-1")

    assert second["replayed"] is True
    assert second["attemptId"] == first["attemptId"]
    assert second["score"] == first["score"]
    assert count(app.db_manager, "user_exam_attempts") == 1
    assert count(app.db_manager, "user_progress") == 2


def test_key_reused_for_another_exam_is_a_conflict(app, users, questions):
    first_exam = seed_exam(app.exam_manager, questions[:2], title="First mock exam")
    second_exam = seed_exam(app.exam_manager, questions[:2], title="Second mock exam")
    answers = {questions[0]: "B", questions[1]: "A"}
    service = app.submission_service

    service.submit_exam(users["alice"], first_exam, answers, idempotency_key="k")
    with pytest.raises(ConflictError):
        service.submit_exam(users["alice"], second_exam, answers, idempotency_key="k")
    with pytest.raises(ConflictError):
        service.submit_practice(users["alice"], answers, idempotency_key="k")

    rows = app.db_manager.execute_query("SELECT exam_id FROM user_exam_attempts")
    assert [row["exam_id"] for row in rows] == [first_exam]
    assert count(app.db_manager, "user_progress") == 2


def test_key_reused_with_other_answers_is_a_conflict(app, users, questions):
    service = app.submission_service
    service.submit_practice(users["alice"], {questions[0]: "B"}, idempotency_key="batch")

    with pytest.raises(ConflictError):
        service.submit_practice(users["alice"], {questions[0]: "C"}, idempotency_key="batch")
    replay = service.submit_practice(users["alice"], {str(questions[0]): "B"}, idempotency_key="batch")

    assert replay["replayed"] is True
    assert count(app.db_manager, "user_progress") == 1


def test_same_key_from_another_user_is_independent(app, users, questions):
    answers = {questions[0]: "B"}
    app.submission_service.submit_practice(users["alice"], answers, idempotency_key="k")
    result = app.submission_service.submit_practice(users["bob"], answers, idempotency_key="k")

    assert result["replayed"] is False
    assert count(app.db_manager, "user_progress") == 2


def test_concurrent_duplicate_resolves_to_stored_result(app, users, questions):
    exam_id = seed_exam(app.exam_manager, questions[:2])
    answers = {questions[0]: "B"}
    first = app.submission_service.submit_exam(users["alice"], exam_id, answers, idempotency_key="race")

    class RacingService(SubmissionService):
        checks = 0

        def _stored_result(self, *args, **kwargs):
            # The first lookup happens before the other request commits
            RacingService.checks += 1
            if RacingService.checks == 1:
                return None
            return super()._stored_result(*args, **kwargs)

    service = RacingService(app.db_manager, app.question_manager, app.exam_manager)
    result = service.submit_exam(users["alice"], exam_id, answers, idempotency_key="race")

    assert result["replayed"] is True
    assert result["attemptId"] == first["attemptId"]
    assert count(app.db_manager, "user_exam_attempts") == 1
    assert count(app.db_manager, "user_progress") == 1


def test_exam_session_submits_through_service(app, users, questions):
    exam_id = seed_exam(app.exam_manager, questions[:3], time_limit=1)
    session = app.submission_service.open_exam_session(users["alice"], exam_id)
    session.start()
    session.select_answer(questions[1], "A")

    for _ in range(60):
        session.countdown.tick()

    assert session.auto_submitted
    assert session.result["score"] == {"correct": 1, "total": 1, "percentage": 100}
    assert count(app.db_manager, "user_exam_attempts") == 1
