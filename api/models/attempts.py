"""Attempt-related Pydantic models."""
from datetime import datetime
from typing import Literal, Union

from pydantic import BaseModel, Field

# A selected option id, a list of ids/positions/pair labels, or free text
AnswerValue = Union[str, int, list[Union[str, int]], None]


class AnswerSubmitRequest(BaseModel):
    """Model for saving the answer to one question."""

    answer: AnswerValue = None


class UserAnswerResponse(BaseModel):
    """Saved answer row."""

    id: int
    attemptId: str
    questionId: str
    answerIds: str | None = None
    answerText: str | None = None
    updatedAt: datetime


class AttemptUpdateRequest(BaseModel):
    """Pause, resume or restart the open attempt."""

    status: Literal["paused", "in_progress"] | None = None
    action: Literal["restart"] | None = None


class AttemptResponse(BaseModel):
    """Attempt state."""

    id: str
    userId: int
    testId: str
    status: str
    startedAt: datetime
    pausedAt: datetime | None = None
    resumedAt: datetime | None = None
    completedAt: datetime | None = None
    totalTime: int = 0
    userAnswers: list[UserAnswerResponse] | None = None


class SubmittedAnswer(BaseModel):
    """Answer sent along with a submission."""

    questionId: str = Field(..., min_length=1)
    answer: AnswerValue = None


class SubmitTestRequest(BaseModel):
    """Model for submitting a test."""

    attemptId: str | None = None
    answers: list[SubmittedAnswer] = Field(default_factory=list)
    timeSpent: int = Field(0, ge=0)


class ResultResponse(BaseModel):
    """Stored result of an attempt."""

    id: int
    attemptId: str
    testId: str
    testTitle: str | None = None
    subjectSlug: str | None = None
    correctAnswers: int
    totalQuestions: int
    rawScore: int
    maxScore: int
    scaledScore: int
    percentage: float
    timeSpent: int
    createdAt: datetime


class SubmitTestResponse(BaseModel):
    """Model for test submission response."""

    result: ResultResponse
    attempt: AttemptResponse
    message: str = "Test submitted successfully"
