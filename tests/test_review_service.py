from datetime import date

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from api.models.db import ReviewCompletion
from api.services import review_service


def test_review_dates_follow_schedule() -> None:
    studied = date(2024, 1, 31)
    assert review_service.review_date_for(studied, 0) == date(2024, 1, 31)
    assert review_service.review_date_for(studied, 3) == date(2024, 2, 3)
    assert review_service.review_date_for(studied, 14) == date(2024, 2, 14)
    # Month checkpoints clamp to the end of shorter months
    assert review_service.review_date_for(studied, 30) == date(2024, 2, 29)
    assert review_service.review_date_for(studied, 60) == date(2024, 3, 31)
    assert review_service.add_months(date(2023, 12, 15), 1) == date(2024, 1, 15)


def test_create_item_requires_subject_and_topic(db, user) -> None:
    with pytest.raises(ValueError):
        review_service.create_item(db, user.id, "  ", "Fractions", date(2024, 5, 1))


def test_toggle_is_idempotent(db, user) -> None:
    item = review_service.create_item(db, user.id, "Math", "Fractions", date(2024, 5, 1))
    review_date = review_service.review_date_for(item.studied_date, 3)

    first = review_service.toggle_completion(db, user.id, item.id, review_date, 3, True)
    second = review_service.toggle_completion(db, user.id, item.id, review_date, 3, True)
    assert first.id == second.id
    assert db.scalar(select(func.count()).select_from(ReviewCompletion)) == 1

    assert review_service.toggle_completion(db, user.id, item.id, review_date, 3, False) is None
    assert review_service.toggle_completion(db, user.id, item.id, review_date, 3, False) is None
    assert db.scalar(select(func.count()).select_from(ReviewCompletion)) == 0


def test_checkpoints_mark_done_keys(db, user) -> None:
    item = review_service.create_item(db, user.id, "Math", "Fractions", date(2024, 5, 1))
    review_service.toggle_completion(db, user.id, item.id, date(2024, 5, 8), 7, True)
    keys = {c.key for c in review_service.list_completions(db, user.id)}

    checkpoints = review_service.checkpoints_for(item, keys, intervals=(0, 7))

    assert [(c.interval_days, c.review_date, c.done) for c in checkpoints] == [
        (0, date(2024, 5, 1), False),
        (7, date(2024, 5, 8), True),
    ]
    assert keys == {review_service.completion_key(item.id, date(2024, 5, 8), 7)}


def test_reschedule_moves_completions(db, user) -> None:
    item = review_service.create_item(db, user.id, "Math", "Fractions", date(2024, 5, 1))
    review_service.toggle_completion(db, user.id, item.id, date(2024, 5, 4), 3, True)

    review_service.reschedule_item(db, user.id, item.id, date(2024, 6, 10))

    completions = review_service.list_completions(db, user.id)
    assert [(c.review_date, c.interval_days) for c in completions] == [(date(2024, 6, 13), 3)]


def test_items_are_private(db, user, other_user) -> None:
    item = review_service.create_item(db, user.id, "Math", "Fractions", date(2024, 5, 1))

    with pytest.raises(HTTPException) as exc:
        review_service.delete_item(db, other_user.id, item.id)
    assert exc.value.status_code == 404

    review_service.delete_item(db, user.id, item.id)
    assert review_service.list_items(db, user.id) == []
