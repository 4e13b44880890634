"""User database model."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from api.database import Base

if TYPE_CHECKING:
    from api.models.db.attempt import TestAttempt
    from api.models.db.daily_report import DailyReportSetting


class User(Base):
    """Platform user. Accounts are issued by the external auth service."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Profile fields
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Relationships
    attempts: Mapped[list["TestAttempt"]] = relationship(
        "TestAttempt",
        back_populates="user",
        cascade="all, delete-orphan"
    )
    daily_report_setting: Mapped["DailyReportSetting | None"] = relationship(
        "DailyReportSetting",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', email='{self.email}')>"
