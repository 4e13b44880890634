"""Service layer for spaced-repetition review tracking."""
import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta

from fastapi import HTTPException
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from api.config import REVIEW_INTERVALS
from api.models.db.review import ReviewCompletion, ReviewPlanItem

logger = logging.getLogger(__name__)

# Checkpoints expressed in calendar months rather than days
MONTH_INTERVALS = {30: 1, 60: 2}


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the month's end."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def review_date_for(studied_date: date, interval_days: int) -> date:
    """Date of the checkpoint interval_days after studied_date."""
    months = MONTH_INTERVALS.get(interval_days)
    if months is not None:
        return add_months(studied_date, months)
    return studied_date + timedelta(days=interval_days)


def completion_key(item_id: str, review_date: date, interval_days: int) -> str:
    return f"{item_id}__{review_date.isoformat()}__{interval_days}"


@dataclass(frozen=True)
class Checkpoint:
    """One scheduled review of an item."""

    item_id: str
    interval_days: int
    review_date: date
    done: bool


def checkpoints_for(
    item: ReviewPlanItem,
    completed_keys: set[str],
    intervals: tuple[int, ...] = REVIEW_INTERVALS,
) -> list[Checkpoint]:
    """Expand an item into its checkpoints on the configured schedule."""
    checkpoints = []
    for interval in intervals:
        review_date = review_date_for(item.studied_date, interval)
        checkpoints.append(
            Checkpoint(
                item_id=item.id,
                interval_days=interval,
                review_date=review_date,
                done=completion_key(item.id, review_date, interval) in completed_keys,
            )
        )
    return checkpoints


def get_owned_item(db: DBSession, user_id: int, item_id: str) -> ReviewPlanItem:
    """Get a review item of the user or 404."""
    item = db.execute(
        select(ReviewPlanItem).where(
            ReviewPlanItem.id == item_id,
            ReviewPlanItem.user_id == user_id,
        )
    ).scalar_one_or_none()
    if item is None:
        raise HTTPException(status_code=404, detail="Review item not found")
    return item


def create_item(
    db: DBSession, user_id: int, subject: str, topic: str, studied_date: date
) -> ReviewPlanItem:
    """Mark a topic as studied."""
    subject = subject.strip()
    topic = topic.strip()
    if not subject or not topic:
        raise ValueError("subject, topic and studiedDate are required")

    item = ReviewPlanItem(
        user_id=user_id,
        subject=subject,
        topic=topic,
        studied_date=studied_date,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def list_items(db: DBSession, user_id: int) -> list[ReviewPlanItem]:
    """Review items of a user, newest first."""
    return list(
        db.execute(
            select(ReviewPlanItem)
            .where(ReviewPlanItem.user_id == user_id)
            .order_by(ReviewPlanItem.created_at.desc())
        ).scalars().all()
    )


def list_completions(db: DBSession, user_id: int) -> list[ReviewCompletion]:
    """All completion records of a user."""
    return list(
        db.execute(
            select(ReviewCompletion).where(ReviewCompletion.user_id == user_id)
        ).scalars().all()
    )


def reschedule_item(
    db: DBSession, user_id: int, item_id: str, studied_date: date
) -> ReviewPlanItem:
    """
    Move an item to a new studied date.
    Existing completions follow their interval to the new checkpoint date.
    """
    item = get_owned_item(db, user_id, item_id)
    intervals = sorted(
        set(
            db.execute(
                select(ReviewCompletion.interval_days).where(
                    ReviewCompletion.user_id == user_id,
                    ReviewCompletion.review_plan_item_id == item_id,
                )
            ).scalars()
        )
    )

    item.studied_date = studied_date
    db.execute(
        delete(ReviewCompletion).where(
            ReviewCompletion.user_id == user_id,
            ReviewCompletion.review_plan_item_id == item_id,
        )
    )
    for interval in intervals:
        db.add(
            ReviewCompletion(
                user_id=user_id,
                review_plan_item_id=item_id,
                interval_days=interval,
                review_date=review_date_for(studied_date, interval),
            )
        )

    db.commit()
    db.refresh(item)
    return item


def delete_item(db: DBSession, user_id: int, item_id: str) -> None:
    """Delete an item and its completions."""
    item = get_owned_item(db, user_id, item_id)
    db.delete(item)
    db.commit()


def _find_completion(
    db: DBSession, user_id: int, item_id: str, review_date: date, interval_days: int
) -> ReviewCompletion | None:
    return db.execute(
        select(ReviewCompletion).where(
            ReviewCompletion.user_id == user_id,
            ReviewCompletion.review_plan_item_id == item_id,
            ReviewCompletion.review_date == review_date,
            ReviewCompletion.interval_days == interval_days,
        )
    ).scalar_one_or_none()


def toggle_completion(
    db: DBSession,
    user_id: int,
    item_id: str,
    review_date: date,
    interval_days: int,
    completed: bool,
) -> ReviewCompletion | None:
    """
    Mark a checkpoint done or not done.

    Both directions are idempotent: marking done twice keeps a single
    record, unmarking a missing record does nothing. interval_days is not
    checked against the configured schedule.

    Returns:
        The completion record when completed is True, otherwise None.
    """
    get_owned_item(db, user_id, item_id)

    if not completed:
        db.execute(
            delete(ReviewCompletion).where(
                ReviewCompletion.user_id == user_id,
                ReviewCompletion.review_plan_item_id == item_id,
                ReviewCompletion.review_date == review_date,
                ReviewCompletion.interval_days == interval_days,
            )
        )
        db.commit()
        return None

    existing = _find_completion(db, user_id, item_id, review_date, interval_days)
    if existing is not None:
        return existing

    completion = ReviewCompletion(
        user_id=user_id,
        review_plan_item_id=item_id,
        review_date=review_date,
        interval_days=interval_days,
    )
    db.add(completion)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent toggle won the insert
        db.rollback()
        existing = _find_completion(db, user_id, item_id, review_date, interval_days)
        if existing is None:
            raise
        return existing

    db.refresh(completion)
    logger.debug(
        "Review checkpoint %s marked done", completion_key(item_id, review_date, interval_days)
    )
    return completion
