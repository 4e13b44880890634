"""Pydantic models."""
from api.models.attempts import (
    AnswerSubmitRequest,
    AttemptResponse,
    AttemptUpdateRequest,
    ResultResponse,
    SubmitTestRequest,
    SubmitTestResponse,
    UserAnswerResponse,
)
from api.models.common import MessageResponse
from api.models.mistakes import MistakeResponse
from api.models.reports import (
    CronTickResponse,
    DailyReportLogResponse,
    DailyReportSettingResponse,
    DailyReportSettingsView,
    DailyReportSettingUpdate,
    SendNowResponse,
)
from api.models.review import (
    ReviewCompletionResponse,
    ReviewItemCreate,
    ReviewItemResponse,
    ReviewItemUpdate,
    ReviewOverviewResponse,
    ReviewToggleRequest,
    ReviewToggleResponse,
)

__all__ = [
    "AnswerSubmitRequest",
    "AttemptResponse",
    "AttemptUpdateRequest",
    "ResultResponse",
    "SubmitTestRequest",
    "SubmitTestResponse",
    "UserAnswerResponse",
    "MessageResponse",
    "MistakeResponse",
    "CronTickResponse",
    "DailyReportLogResponse",
    "DailyReportSettingResponse",
    "DailyReportSettingsView",
    "DailyReportSettingUpdate",
    "SendNowResponse",
    "ReviewCompletionResponse",
    "ReviewItemCreate",
    "ReviewItemResponse",
    "ReviewItemUpdate",
    "ReviewOverviewResponse",
    "ReviewToggleRequest",
    "ReviewToggleResponse",
]
