"""
Subject, Test, Question and Answer models.

The catalog is maintained by the admin tooling; the scoring core only reads it.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from api.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class QuestionType(str, enum.Enum):
    """Supported question types."""

    SINGLE_CHOICE = "single_choice"
    MULTIPLE_ANSWERS = "multiple_answers"
    SELECT_THREE = "select_three"
    MATCHING = "matching"
    WRITTEN = "written"


class TestType(str, enum.Enum):
    """Kind of test. Past NMT papers use the official score conversion."""

    __test__ = False

    PRACTICE = "practice"
    TOPIC = "topic"
    PAST_NMT = "past_nmt"


class Subject(Base):
    """Exam subject."""

    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    tests: Mapped[list["Test"]] = relationship("Test", back_populates="subject")


class Test(Base):
    """A test: an ordered list of questions."""

    __test__ = False

    __tablename__ = "tests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    subject_id: Mapped[str | None] = mapped_column(
        ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    type: Mapped[str] = mapped_column(
        String(30), default=TestType.PRACTICE.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    subject: Mapped["Subject | None"] = relationship("Subject", back_populates="tests")
    questions: Mapped[list["Question"]] = relationship(
        "Question",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="Question.order",
    )


class Question(Base):
    """Question within a test."""

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(
        String(30), default=QuestionType.SINGLE_CHOICE.value, nullable=False
    )
    content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    points: Mapped[int | None] = mapped_column(nullable=True)
    order: Mapped[int] = mapped_column(default=0, nullable=False)

    test: Mapped["Test"] = relationship("Test", back_populates="questions")
    answers: Mapped[list["Answer"]] = relationship(
        "Answer",
        back_populates="question",
        cascade="all, delete-orphan",
    )


class Answer(Base):
    """Answer option of a question."""

    __tablename__ = "answers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    is_correct: Mapped[bool] = mapped_column(default=False, nullable=False)
    order: Mapped[int | None] = mapped_column(nullable=True)
    matching_pair: Mapped[str | None] = mapped_column(String(100), nullable=True)

    question: Mapped["Question"] = relationship("Question", back_populates="answers")
