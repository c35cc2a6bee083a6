import pytest

from aeroprep.core.errors import NotFoundError, ValidationError
from aeroprep.core.question_manager import QuestionManager, parse_subject_id, serialize_question
from aeroprep.core.schemas import QuestionUpdate
from conftest import seed_exam, seed_question


class DummyDB:
    def __init__(self, db_type):
        self.db_type = db_type
        self.captured_query = None
        self.captured_params = None
        self.next_result = []

    def execute_query(self, query, params=None):
        self.captured_query = query
        self.captured_params = params or {}
        return self.next_result


ROW = {
    "id": 1, "question_text": "t", "options": '["a", "b"]', "correct_answer": "A",
    "explanation": "", "image_url": None, "question_type": "math", "category": "pilot",
    "difficulty": "easy", "created_by": None, "created_at": None, "updated_at": None,
}


def test_question_set_uses_random_order_and_clamps_limit():
    db = DummyDB(db_type="sqlite")
    qm = QuestionManager(db, default_limit=10, max_limit=50)
    db.next_result = [dict(ROW)]

    questions = qm.get_question_set("pilot", "math", None, 500)

    assert "ORDER BY RANDOM()" in db.captured_query
    assert "question_type = :question_type" in db.captured_query
    assert "difficulty" not in db.captured_params
    assert db.captured_params["limit"] == 50
    assert questions[0]["options"] == ["a", "b"]


def test_question_set_default_limit():
    db = DummyDB(db_type="postgresql")
    qm = QuestionManager(db, default_limit=10, max_limit=50)
    db.next_result = [dict(ROW)]

    qm.get_question_set("amt")

    assert db.captured_params == {"category": "amt", "limit": 10}


def test_question_set_rejects_values_outside_enumerations():
    db = DummyDB(db_type="sqlite")
    qm = QuestionManager(db)

    with pytest.raises(ValidationError):
        qm.get_question_set("astronaut")
    with pytest.raises(ValidationError):
        qm.get_question_set("pilot", question_type="chemistry")
    assert db.captured_query is None


def test_question_set_without_matches_is_not_found():
    db = DummyDB(db_type="sqlite")
    with pytest.raises(NotFoundError):
        QuestionManager(db).get_question_set("pilot")


def test_serialize_without_answer_strips_key_and_explanation():
    question = dict(ROW, options=["a", "b"], explanation="why")
    data = serialize_question(question, include_answer=False)

    assert "correctAnswer" not in data
    assert "explanation" not in data
    assert data["options"] == ["a", "b"]


def test_literal_correct_answer_is_stored_as_letter(app):
    qm = app.question_manager
    question_id = seed_question(qm, correct="22")

    assert qm.get_question(question_id)["correct_answer"] == "D"


def test_update_reresolves_answer_key(app):
    qm = app.question_manager
    question_id = seed_question(qm, correct="B")

    qm.update_question(question_id, QuestionUpdate.model_validate({"options": ["4", "3"]}))
    with pytest.raises(ValidationError):
        qm.update_question(question_id, QuestionUpdate.model_validate({"correctAnswer": "C"}))

    updated = qm.get_question(question_id)
    assert updated["options"] == ["4", "3"]
    assert updated["correct_answer"] == "B"


def test_update_cannot_clear_required_fields(app):
    qm = app.question_manager
    question_id = seed_question(qm)

    with pytest.raises(ValidationError):
        qm.update_question(question_id, QuestionUpdate.model_validate({"category": None}))


def test_get_questions_by_ids_keeps_order_and_skips_unknown(app):
    qm = app.question_manager
    first = seed_question(qm, text="First question text")
    second = seed_question(qm, text="Second question text")

    found = qm.get_questions_by_ids([second, 999, first])

    assert [question["id"] for question in found] == [second, first]


def test_delete_question_renumbers_exams_and_keeps_ledger(app):
    qm = app.question_manager
    ids = [seed_question(qm, text=f"Question number {n}") for n in range(4)]
    exam_id = seed_exam(app.exam_manager, ids)
    db = app.db_manager
    db.execute_query(
        "INSERT INTO users (name, email, password_hash) VALUES ('Zed', 'zed@aeroprep.io', 'x')"
    )
    user_id = db.execute_query("SELECT id FROM users WHERE email = 'zed@aeroprep.io'")[0]["id"]
    db.execute_query(
        "INSERT INTO user_progress (user_id, question_id, is_correct) VALUES (:user_id, :question_id, :ok)",
        {"user_id": user_id, "question_id": ids[1], "ok": True},
    )

    qm.delete_question(ids[1])

    rows = db.execute_query(
        "SELECT question_id, position FROM exam_questions WHERE exam_id = :id ORDER BY position", {"id": exam_id}
    )
    assert [(row["question_id"], row["position"]) for row in rows] == [(ids[0], 1), (ids[2], 2), (ids[3], 3)]
    assert db.execute_query("SELECT COUNT(*) AS count FROM user_progress")[0]["count"] == 1
    with pytest.raises(NotFoundError):
        qm.delete_question(ids[1])


def test_list_questions_paginates_and_searches(app):
    qm = app.question_manager
    for n in range(5):
        seed_question(qm, text=f"Navigation item {n}")
    seed_question(qm, text="Weather briefing", category="amt")

    page = qm.list_questions(search="Navigation", page=2, limit=2)

    assert page["pagination"] == {"page": 2, "limit": 2, "total": 5, "totalPages": 3}
    assert len(page["questions"]) == 2
    assert qm.list_questions(category="amt")["pagination"]["total"] == 1
    assert qm.count_questions() == 6


def test_list_subjects_groups_by_category_and_type():
    db = DummyDB(db_type="sqlite")
    db.next_result = [
        {"category": "amt", "question_type": "math", "question_count": 3},
        {"category": "pilot", "question_type": "reading", "question_count": 7},
    ]

    subjects = QuestionManager(db).list_subjects(category="amt", search="AMT PREPARATION")

    assert "GROUP BY category, question_type" in db.captured_query
    assert db.captured_params == {"category": "amt"}
    assert [subject["id"] for subject in subjects] == ["amt-math"]
    assert subjects[0]["questionCount"] == 3
    assert subjects[0]["description"] == "Core mathematical concepts and calculations for AMT preparation"


@pytest.mark.parametrize("subject_id", ["pilot", "-math", "pilot-", "astronaut-math", "pilot-chemistry"])
def test_parse_subject_id_rejects_malformed_ids(subject_id):
    with pytest.raises(ValidationError):
        parse_subject_id(subject_id)
