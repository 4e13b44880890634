"""Spaced-repetition review endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session as DbSession

from api.config import REVIEW_INTERVALS
from api.database import get_db
from api.dependencies import get_current_user
from api.models import (
    MessageResponse,
    ReviewCompletionResponse,
    ReviewItemCreate,
    ReviewItemResponse,
    ReviewItemUpdate,
    ReviewOverviewResponse,
    ReviewToggleRequest,
    ReviewToggleResponse,
)
from api.models.db.review import ReviewCompletion, ReviewPlanItem
from api.models.db.user import User
from api.models.review import ReviewCheckpointResponse, ReviewItemWithCheckpoints
from api.services import review_service
from api.utils import validate_id, validate_ymd

router = APIRouter(prefix="/api/review", tags=["review"])


def _item_to_response(item: ReviewPlanItem) -> ReviewItemResponse:
    return ReviewItemResponse(
        id=item.id,
        subject=item.subject,
        topic=item.topic,
        studiedDate=item.studied_date.isoformat(),
        createdAt=item.created_at,
    )


def _completion_to_response(completion: ReviewCompletion) -> ReviewCompletionResponse:
    return ReviewCompletionResponse(
        id=completion.id,
        reviewPlanItemId=completion.review_plan_item_id,
        reviewDate=completion.review_date.isoformat(),
        intervalDays=completion.interval_days,
        createdAt=completion.created_at,
    )


@router.get("", response_model=ReviewOverviewResponse)
def get_review_overview(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> ReviewOverviewResponse:
    """All review items with their checkpoints."""
    completions = review_service.list_completions(db, current_user.id)
    keys = {c.key for c in completions}

    items = []
    for item in review_service.list_items(db, current_user.id):
        base = _item_to_response(item)
        items.append(
            ReviewItemWithCheckpoints(
                **base.model_dump(),
                checkpoints=[
                    ReviewCheckpointResponse(
                        intervalDays=cp.interval_days,
                        reviewDate=cp.review_date.isoformat(),
                        done=cp.done,
                    )
                    for cp in review_service.checkpoints_for(item, keys)
                ],
            )
        )

    return ReviewOverviewResponse(
        items=items,
        completedKeys=sorted(keys),
        intervals=list(REVIEW_INTERVALS),
    )


@router.post(
    "/items",
    response_model=ReviewItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_review_item(
    payload: ReviewItemCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> ReviewItemResponse:
    """Mark a topic as studied on a date."""
    studied_date = validate_ymd("studiedDate", payload.studiedDate)
    try:
        item = review_service.create_item(
            db, current_user.id, payload.subject, payload.topic, studied_date
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _item_to_response(item)


@router.patch("/items/{item_id}", response_model=ReviewItemResponse)
def reschedule_review_item(
    item_id: str,
    payload: ReviewItemUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> ReviewItemResponse:
    """Move an item to a new studied date; completions follow their intervals."""
    item_id = validate_id("itemId", item_id)
    studied_date = validate_ymd("studiedDate", payload.studiedDate)
    item = review_service.reschedule_item(db, current_user.id, item_id, studied_date)
    return _item_to_response(item)


@router.delete("/items/{item_id}", response_model=MessageResponse)
def delete_review_item(
    item_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> MessageResponse:
    item_id = validate_id("itemId", item_id)
    review_service.delete_item(db, current_user.id, item_id)
    return MessageResponse(message="Review item deleted")


@router.post("/completions/toggle", response_model=ReviewToggleResponse)
def toggle_review_completion(
    payload: ReviewToggleRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> ReviewToggleResponse:
    """Mark or unmark one checkpoint. Repeating the same request is a no-op."""
    item_id = validate_id("reviewPlanItemId", payload.reviewPlanItemId)
    review_date = validate_ymd("reviewDate", payload.reviewDate)
    if payload.intervalDays < 0:
        raise HTTPException(status_code=400, detail="Invalid intervalDays")

    completion = review_service.toggle_completion(
        db,
        current_user.id,
        item_id,
        review_date,
        payload.intervalDays,
        payload.completed,
    )
    return ReviewToggleResponse(
        completion=_completion_to_response(completion) if completion else None,
    )
