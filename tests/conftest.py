from contextlib import contextmanager

import pytest
from werkzeug.security import generate_password_hash

from aeroprep.app import create_app
from aeroprep.core.schemas import ExamCreate, QuestionCreate


def make_app(monkeypatch, tmp_path, **env):
    # Point every test at its own throwaway SQLite file
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, str(value))
    return create_app()


def seed_user(db_manager, name, email, role="user"):
    rows = db_manager.execute_query(
        """
        INSERT INTO users (name, email, password_hash, role)
        VALUES (:name, :email, :password_hash, :role)
        RETURNING id
        """,
        {"name": name, "email": email, "password_hash": generate_password_hash("secret123"), "role": role},
    )
    return rows[0]["id"]


def seed_question(question_manager, text="What is 2 + 2 in base ten?", correct="B",
                  category="pilot", question_type="math", difficulty="medium", explanation="Basic sum"):
    data = QuestionCreate.model_validate({
        "questionText": text,
        "options": ["3", "4", "5", "22"],
        "correctAnswer": correct,
        "explanation": explanation,
        "questionType": question_type,
        "category": category,
        "difficulty": difficulty,
    })
    return question_manager.create_question(data)["id"]


def seed_exam(exam_manager, question_ids, title="Pilot mock exam", time_limit=30, category="pilot"):
    data = ExamCreate.model_validate({
        "title": title,
        "category": category,
        "timeLimit": time_limit,
        "questionIds": question_ids,
    })
    return exam_manager.create_exam(data)["id"]


@pytest.fixture()
def app(monkeypatch, tmp_path):
    flask_app = make_app(monkeypatch, tmp_path)
    yield flask_app
    flask_app.db_manager.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def users(app):
    db = app.db_manager
    return {
        "admin": seed_user(db, "Admin", "admin@aeroprep.io", role="admin"),
        "alice": seed_user(db, "Alice", "alice@aeroprep.io"),
        "bob": seed_user(db, "Bob", "bob@aeroprep.io"),
    }


@pytest.fixture()
def questions(app):
    qm = app.question_manager
    return [
        seed_question(qm, text="What is 2 + 2 in base ten?", correct="B"),
        seed_question(qm, text="Which gauge shows altitude?", correct="A", question_type="mechanical"),
        seed_question(qm, text="Pick the odd shape out.", correct="C", question_type="abstract"),
        seed_question(qm, text="Greeting a passenger politely", correct="D", category="hostess",
                      question_type="reading"),
    ]


@contextmanager
def logged_in(client, user_id, role="user"):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["role"] = role
    yield client
