"""
Shared test fixtures for the ClassHub worksheet sync backend.
Everything runs against the in-memory assignment store; no network calls.
"""
import os
import time

import jwt
import pytest

from classhub.services.assignment_store import InMemoryAssignmentStore, set_store

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")

JWT_SECRET = "classhub-test-secret-0123456789abcdef"

TEACHER_UID = "teacher-1"
ALICE_UID = "auth-alice"
BOB_UID = "auth-bob"

QUIZ_QUESTIONS = [
    {"questionText": "Which organelle releases energy?",
     "options": ["Nucleus", "Mitochondria", "Vacuole"], "correctAnswerIndex": 1},
    {"questionText": "What surrounds a plant cell?",
     "options": ["Cell wall", "Cytoplasm"], "correctAnswerIndex": 0},
    {"questionText": "Where does photosynthesis happen?",
     "options": ["Ribosome", "Nucleus", "Chloroplast"], "correctAnswerIndex": 2},
]


@pytest.fixture
def fixtures_dir():
    """Return the path to the fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def worksheet_html():
    with open(os.path.join(FIXTURES_DIR, "cells_worksheet.html")) as fh:
        return fh.read()


@pytest.fixture
def seed_rows(worksheet_html):
    """Rows for a class with two students, an HTML worksheet and a quiz."""
    return {
        "classes": [
            {"id": "class-1", "className": "Year 7 Biology", "teacherUID": TEACHER_UID},
        ],
        "students": [
            {"id": "s1", "studentUID": "stu-alice", "username": "alice"},
            {"id": "s2", "studentUID": "stu-bob", "username": "Bob"},
        ],
        "worksheets": [
            {"id": "ws-cells", "title": "Cells", "type": "html", "htmlContent": worksheet_html,
             "fileMap": {"cell.png": "https://files.example.com/ws-cells/cell.png"}},
            {"id": "ws-quiz", "title": "Cells Quiz", "type": "quiz", "questions": QUIZ_QUESTIONS},
        ],
        "assignments": [
            {"id": "a-alice", "classId": "class-1", "worksheetId": "ws-cells",
             "studentUID": "stu-alice", "studentAuthUID": ALICE_UID,
             "status": "Not Started", "studentWork": {}},
            {"id": "a-bob", "classId": "class-1", "worksheetId": "ws-cells",
             "studentUID": "stu-bob", "studentAuthUID": BOB_UID,
             "status": "In Progress",
             "studentWork": {"inputs": {"q1": "It stores DNA"}, "interactiveStates": {}}},
            {"id": "quiz-alice", "classId": "class-1", "worksheetId": "ws-quiz",
             "studentUID": "stu-alice", "studentAuthUID": ALICE_UID,
             "status": "Not Started", "studentWork": {}},
        ],
    }


@pytest.fixture
def store(seed_rows):
    """A fresh in-memory store seeded with seed_rows."""
    return InMemoryAssignmentStore(
        assignments=seed_rows["assignments"],
        worksheets=seed_rows["worksheets"],
        classes=seed_rows["classes"],
        students=seed_rows["students"],
    )


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_token(monkeypatch):
    """Return a function that signs a Supabase-style access token for a user id."""
    monkeypatch.setenv("SUPABASE_JWT_SECRET", JWT_SECRET)

    def _make(user_id, email="user@example.com"):
        payload = {
            "sub": user_id,
            "email": email,
            "aud": "authenticated",
            "exp": int(time.time()) + 3600,
        }
        return jwt.encode(payload, JWT_SECRET, algorithm="HS256")
    return _make


@pytest.fixture
def auth_header(make_token):
    def _header(user_id):
        return {"Authorization": "Bearer " + make_token(user_id)}
    return _header


@pytest.fixture
def client(store, make_token):
    """Flask test client wired to the in-memory store."""
    from classhub.app import create_app
    app = create_app(store=store)
    app.config["TESTING"] = True
    with app.test_client() as test_client:
        yield test_client
    set_store(None)
