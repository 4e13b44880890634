"""Review Pydantic models."""
from datetime import datetime

from pydantic import BaseModel, Field


class ReviewItemCreate(BaseModel):
    """Mark a topic as studied."""

    subject: str = Field(..., min_length=1, max_length=200)
    topic: str = Field(..., min_length=1, max_length=500)
    studiedDate: str = Field(..., min_length=1)


class ReviewItemUpdate(BaseModel):
    """Move an item to another studied date."""

    studiedDate: str = Field(..., min_length=1)


class ReviewItemResponse(BaseModel):
    """Review item."""

    id: str
    subject: str
    topic: str
    studiedDate: str
    createdAt: datetime


class ReviewCheckpointResponse(BaseModel):
    """Scheduled checkpoint of an item."""

    intervalDays: int
    reviewDate: str
    done: bool


class ReviewItemWithCheckpoints(ReviewItemResponse):
    """Review item with its schedule."""

    checkpoints: list[ReviewCheckpointResponse]


class ReviewOverviewResponse(BaseModel):
    """All review items and completed checkpoint keys."""

    items: list[ReviewItemWithCheckpoints]
    completedKeys: list[str]
    intervals: list[int]


class ReviewToggleRequest(BaseModel):
    """Mark or unmark a checkpoint."""

    reviewPlanItemId: str = Field(..., min_length=1)
    reviewDate: str = Field(..., min_length=1)
    intervalDays: int
    completed: bool = False


class ReviewCompletionResponse(BaseModel):
    """Completion record."""

    id: int
    reviewPlanItemId: str
    reviewDate: str
    intervalDays: int
    createdAt: datetime


class ReviewToggleResponse(BaseModel):
    """Toggle outcome; completion is present when marked done."""

    ok: bool = True
    completion: ReviewCompletionResponse | None = None
