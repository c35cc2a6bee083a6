import pydantic
import pytest

from aeroprep.core.errors import NotFoundError, ValidationError
from aeroprep.core.schemas import ExamCreate, ExamUpdate
from conftest import seed_exam, seed_question


def test_create_exam_stores_contiguous_positions(app, questions):
    exam_id = seed_exam(app.exam_manager, [questions[2], questions[0], questions[1]])

    ordered = app.exam_manager.get_exam_questions(exam_id)

    assert [q["id"] for q in ordered] == [questions[2], questions[0], questions[1]]
    assert [q["position"] for q in ordered] == [1, 2, 3]


def test_create_exam_with_missing_question_writes_nothing(app, questions):
    data = ExamCreate.model_validate({
        "title": "Broken exam", "category": "pilot", "questionIds": [questions[0], 12345],
    })

    with pytest.raises(ValidationError) as excinfo:
        app.exam_manager.create_exam(data)

    assert excinfo.value.details["missingQuestionIds"] == [12345]
    assert app.exam_manager.list_exams() == []


def test_exam_schema_rejects_duplicates_and_bad_time_limits():
    with pytest.raises(pydantic.ValidationError):
        ExamCreate.model_validate({"title": "Dup", "category": "pilot", "questionIds": [1, 1]})
    with pytest.raises(pydantic.ValidationError):
        ExamCreate.model_validate({"title": "Long", "category": "pilot", "questionIds": [1], "timeLimit": 301})
    with pytest.raises(pydantic.ValidationError):
        ExamCreate.model_validate({"title": "Empty", "category": "pilot", "questionIds": []})


def test_get_exam_hides_answers_unless_asked(app, questions):
    exam_id = seed_exam(app.exam_manager, questions[:2])

    public = app.exam_manager.get_exam(exam_id)
    full = app.exam_manager.get_exam(exam_id, include_answers=True)

    assert public["exam"]["questionCount"] == 2
    assert "correctAnswer" not in public["questions"][0]
    assert full["questions"][0]["correctAnswer"] == "B"
    with pytest.raises(NotFoundError):
        app.exam_manager.get_exam(999)


def test_update_exam_replaces_ordering(app, questions):
    manager = app.exam_manager
    exam_id = seed_exam(manager, questions[:3])

    manager.update_exam(exam_id, ExamUpdate.model_validate({"title": "Renamed exam", "questionIds": [questions[3], questions[0]]}))

    exam = manager.get_exam(exam_id)
    assert exam["exam"]["title"] == "Renamed exam"
    assert [(q["id"], q["position"]) for q in exam["questions"]] == [(questions[3], 1), (questions[0], 2)]


def test_delete_exam_cascades_to_ordering(app, questions):
    manager = app.exam_manager
    exam_id = seed_exam(manager, questions[:2])

    manager.delete_exam(exam_id)

    assert app.db_manager.execute_query("SELECT COUNT(*) AS count FROM exam_questions")[0]["count"] == 0
    with pytest.raises(NotFoundError):
        manager.delete_exam(exam_id)


def test_list_exams_filters_by_category(app, questions):
    seed_exam(app.exam_manager, questions[:1], title="Pilot basics")
    seed_exam(app.exam_manager, questions[3:], title="Cabin crew basics", category="hostess")

    assert [exam["title"] for exam in app.exam_manager.list_exams("hostess")] == ["Cabin crew basics"]
    assert len(app.exam_manager.list_exams()) == 2
    page = app.exam_manager.list_exams_paginated(search="basics", limit=1)
    assert page["pagination"]["total"] == 2
    assert len(page["exams"]) == 1
