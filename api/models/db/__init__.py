"""Database models."""
from api.models.db.user import User
from api.models.db.catalog import Answer, Question, QuestionType, Subject, Test, TestType
from api.models.db.attempt import AttemptStatus, Result, TestAttempt, UserAnswer, UserStats
from api.models.db.review import ReviewCompletion, ReviewPlanItem
from api.models.db.daily_report import DailyReportLog, DailyReportSetting, DailyReportStatus

__all__ = [
    "User",
    "Answer",
    "Question",
    "QuestionType",
    "Subject",
    "Test",
    "TestType",
    "AttemptStatus",
    "Result",
    "TestAttempt",
    "UserAnswer",
    "UserStats",
    "ReviewCompletion",
    "ReviewPlanItem",
    "DailyReportLog",
    "DailyReportSetting",
    "DailyReportStatus",
]
