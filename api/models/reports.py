"""Daily report Pydantic models."""
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field


class DailyReportSettingUpdate(BaseModel):
    """Update of the user's digest preferences."""

    targetEmail: EmailStr
    enabled: bool = False
    sendHour: int | None = Field(None, ge=0, le=23)
    timeZone: str | None = None


class DailyReportSettingResponse(BaseModel):
    """Digest preferences."""

    targetEmail: str
    enabled: bool
    sendHour: int
    timeZone: str
    lastSentDate: date | None = None


class DailyReportLogResponse(BaseModel):
    """Dispatch log entry."""

    id: int
    targetEmail: str
    reportDate: date
    status: str
    errorMessage: str | None = None
    createdAt: datetime


class DailyReportSettingsView(BaseModel):
    """Preferences plus recent dispatch logs."""

    setting: DailyReportSettingResponse
    logs: list[DailyReportLogResponse]


class SendNowResponse(BaseModel):
    """Outcome of an on-demand send."""

    ok: bool
    reportDate: date
    metrics: dict[str, Any] | None = None


class CronTickResponse(BaseModel):
    """Aggregate counts of one scheduler tick."""

    ok: bool = True
    totals: dict[str, int]
