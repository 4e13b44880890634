"""
Spaced-repetition review models.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from api.database import Base


class ReviewPlanItem(Base):
    """A topic the user marked as studied on studied_date."""

    __tablename__ = "review_plan_items"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, index=True, default=lambda: uuid.uuid4().hex
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    topic: Mapped[str] = mapped_column(String(500), nullable=False)
    studied_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    completions: Mapped[list["ReviewCompletion"]] = relationship(
        "ReviewCompletion", back_populates="item", cascade="all, delete-orphan"
    )


class ReviewCompletion(Base):
    """Checkpoint of a review item marked as done."""

    __tablename__ = "review_completions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    review_plan_item_id: Mapped[str] = mapped_column(
        ForeignKey("review_plan_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    review_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    interval_days: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "review_plan_item_id",
            "review_date",
            "interval_days",
            name="uq_review_completion",
        ),
    )

    item: Mapped["ReviewPlanItem"] = relationship("ReviewPlanItem", back_populates="completions")

    @property
    def key(self) -> str:
        """Completion key as exposed to clients."""
        return f"{self.review_plan_item_id}__{self.review_date.isoformat()}__{self.interval_days}"
