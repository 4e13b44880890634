"""Mistakes view Pydantic models."""
from datetime import datetime

from pydantic import BaseModel

from api.models.attempts import AnswerValue


class MistakeResponse(BaseModel):
    """A question the user most recently answered wrong."""

    id: int
    questionId: str
    questionText: str
    imageUrl: str | None = None
    questionType: str
    testId: str
    testTitle: str
    subjectSlug: str | None = None
    subjectName: str | None = None
    userAnswer: AnswerValue = None
    correctAnswer: list[str]
    createdAt: datetime | None = None
