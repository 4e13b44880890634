import os

# Keep imports of the app from creating a database file
os.environ.setdefault("DATABASE_URL", "sqlite://")

from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import api.models.db  # noqa: F401
from api.app import app
from api.database import Base, get_db, get_session_factory
from api.dependencies import get_notification_sender
from api.models.db import Answer, Question, Subject, Test, User
from api.services.auth_service import create_access_token


class RecordingSender:
    """Notification sender that keeps messages in memory."""

    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[tuple[str, Any]] = []
        self.error = error

    def send(self, target_email: str, metrics: Any) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((target_email, metrics))


@pytest.fixture()
def session_factory() -> sessionmaker:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def db(session_factory: sessionmaker) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def user(db: Session) -> User:
    row = User(username="student", email="student@example.com", display_name="Olena")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture()
def other_user(db: Session) -> User:
    row = User(username="other", email="other@example.com")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture()
def make_test(db: Session) -> Callable[..., Test]:
    """Build a test from plain question descriptions.

    Each question is a dict with ``type``, optional ``content``, ``points``
    and ``options``; an option is a dict with ``content``, ``correct``,
    ``order`` and ``pair``.
    """

    def _make(
        questions: list[dict[str, Any]],
        subject_slug: str = "mathematics",
        test_type: str = "practice",
        title: str = "Sample test",
    ) -> Test:
        subject = db.execute(
            select(Subject).where(Subject.slug == subject_slug)
        ).scalar_one_or_none()
        if subject is None:
            subject = Subject(slug=subject_slug, name=subject_slug.replace("-", " ").title())
            db.add(subject)

        test = Test(title=title, type=test_type, subject=subject)
        for index, spec in enumerate(questions, start=1):
            question = Question(
                type=spec["type"],
                content=spec.get("content", f"Question {index}"),
                points=spec.get("points"),
                order=index,
            )
            for position, option in enumerate(spec.get("options", []), start=1):
                question.answers.append(
                    Answer(
                        content=option.get("content", ""),
                        is_correct=option.get("correct", False),
                        order=option.get("order", position),
                        matching_pair=option.get("pair"),
                    )
                )
            test.questions.append(question)

        db.add(test)
        db.commit()
        db.refresh(test)
        return test

    return _make


@pytest.fixture()
def sample_test(make_test: Callable[..., Test]) -> Test:
    """Single choice (1 pt), written (2 pts) and matching (4 pts) questions."""
    return make_test(
        [
            {
                "type": "single_choice",
                "content": "2 + 2 = ?",
                "options": [
                    {"content": "4", "correct": True},
                    {"content": "5"},
                ],
            },
            {
                "type": "written",
                "content": "Capital of Ukraine",
                "options": [{"content": "Kyiv", "correct": True}],
            },
            {
                "type": "matching",
                "content": "Match the terms",
                "options": [
                    {"content": "1", "pair": "B"},
                    {"content": "2", "pair": "A"},
                ],
            },
        ]
    )


@pytest.fixture()
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture()
def client(
    session_factory: sessionmaker, db: Session, sender: RecordingSender
) -> TestClient:
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notification_sender] = lambda: sender
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(user: User) -> dict[str, str]:
    token, _ = create_access_token(user.id)
    return {"Authorization": f"Bearer {token}"}
