"""
TestAttempt, UserAnswer, Result and UserStats database models.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from api.database import Base

if TYPE_CHECKING:
    from api.models.db.catalog import Test
    from api.models.db.user import User


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AttemptStatus(str, enum.Enum):
    """Status of a test attempt."""

    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class TestAttempt(Base):
    """
    One user's pass through a test.
    At most one non-completed attempt exists per (user, test).
    """

    __test__ = False

    __tablename__ = "test_attempts"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, index=True, default=lambda: uuid.uuid4().hex
    )

    # References
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Status and timing
    status: Mapped[str] = mapped_column(
        String(20), default=AttemptStatus.IN_PROGRESS.value, nullable=False, index=True
    )
    started_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utc_now, nullable=False
    )
    paused_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    resumed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    total_time: Mapped[int] = mapped_column(default=0, nullable=False)  # seconds

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="attempts")
    test: Mapped["Test"] = relationship("Test")
    answers: Mapped[list["UserAnswer"]] = relationship(
        "UserAnswer", back_populates="attempt", cascade="all, delete-orphan"
    )
    result: Mapped["Result | None"] = relationship(
        "Result", back_populates="attempt", uselist=False
    )

    @property
    def is_completed(self) -> bool:
        """Check if attempt is completed."""
        return self.status == AttemptStatus.COMPLETED.value


class UserAnswer(Base):
    """
    Answer saved for one question of an attempt.
    Selected option identifiers are stored as a JSON list in answer_ids,
    free text in answer_text.
    """

    __tablename__ = "user_answers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("test_attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )

    answer_ids: Mapped[str | None] = mapped_column(Text, nullable=True)
    answer_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utc_now, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utc_now, onupdate=_utc_now, nullable=False
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_attempt_question"),
    )

    # Relationships
    attempt: Mapped["TestAttempt"] = relationship("TestAttempt", back_populates="answers")


class Result(Base):
    """Score of a completed attempt. Written once, never updated."""

    __tablename__ = "results"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("test_attempts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )

    correct_answers: Mapped[int] = mapped_column(default=0, nullable=False)
    total_questions: Mapped[int] = mapped_column(default=0, nullable=False)
    raw_score: Mapped[int] = mapped_column(default=0, nullable=False)
    max_score: Mapped[int] = mapped_column(default=0, nullable=False)
    scaled_score: Mapped[int] = mapped_column(default=0, nullable=False)
    percentage: Mapped[float] = mapped_column(default=0.0, nullable=False)
    time_spent: Mapped[int] = mapped_column(default=0, nullable=False)  # seconds

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utc_now, nullable=False, index=True
    )

    attempt: Mapped["TestAttempt"] = relationship("TestAttempt", back_populates="result")
    test: Mapped["Test"] = relationship("Test")


class UserStats(Base):
    """Running totals over a user's results."""

    __tablename__ = "user_stats"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    total_tests: Mapped[int] = mapped_column(default=0, nullable=False)
    total_score: Mapped[int] = mapped_column(default=0, nullable=False)
    average_score: Mapped[float] = mapped_column(default=0.0, nullable=False)
    best_score: Mapped[int] = mapped_column(default=0, nullable=False)
    accuracy: Mapped[float] = mapped_column(default=0.0, nullable=False)
