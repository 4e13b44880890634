"""Service layer for the attempt lifecycle and answer storage."""
import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession, selectinload

from api.models.db.attempt import AttemptStatus, TestAttempt, UserAnswer
from api.models.db.catalog import Question, Test

logger = logging.getLogger(__name__)

OPEN_STATUSES = (AttemptStatus.IN_PROGRESS.value, AttemptStatus.PAUSED.value)


def get_test(db: DBSession, test_id: str) -> Test:
    """Get test with subject and questions, or 404."""
    test = db.execute(
        select(Test)
        .options(
            selectinload(Test.subject),
            selectinload(Test.questions).selectinload(Question.answers),
        )
        .where(Test.id == test_id)
    ).scalar_one_or_none()
    if test is None:
        raise HTTPException(status_code=404, detail="Test not found")
    return test


def get_owned_attempt(db: DBSession, user_id: int, attempt_id: str) -> TestAttempt:
    """Get an attempt of the user. Other users' attempts are reported as missing."""
    attempt = db.execute(
        select(TestAttempt).where(
            TestAttempt.id == attempt_id,
            TestAttempt.user_id == user_id,
        )
    ).scalar_one_or_none()
    if attempt is None:
        raise HTTPException(status_code=404, detail="Attempt not found")
    return attempt


def _open_attempts(db: DBSession, user_id: int, test_id: str) -> list[TestAttempt]:
    return list(
        db.execute(
            select(TestAttempt).where(
                TestAttempt.user_id == user_id,
                TestAttempt.test_id == test_id,
                TestAttempt.status.in_(OPEN_STATUSES),
            )
        ).scalars().all()
    )


def _close_without_result(db: DBSession, attempts: list[TestAttempt]) -> None:
    """Close attempts that were abandoned: answers dropped, no result."""
    if not attempts:
        return
    ids = [attempt.id for attempt in attempts]
    db.execute(delete(UserAnswer).where(UserAnswer.attempt_id.in_(ids)))
    now = datetime.now(timezone.utc)
    for attempt in attempts:
        attempt.status = AttemptStatus.COMPLETED.value
        attempt.completed_at = now


def start_attempt(db: DBSession, user_id: int, test_id: str) -> TestAttempt:
    """
    Start a fresh attempt.
    Any open attempt for the same test is closed first so that at most one
    non-completed attempt exists per (user, test).
    """
    get_test(db, test_id)

    stale = _open_attempts(db, user_id, test_id)
    if stale:
        logger.info(
            "Closing %d open attempt(s) of user %s for test %s", len(stale), user_id, test_id
        )
    _close_without_result(db, stale)

    attempt = TestAttempt(
        user_id=user_id,
        test_id=test_id,
        status=AttemptStatus.IN_PROGRESS.value,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


def get_paused_attempt(db: DBSession, user_id: int, test_id: str) -> TestAttempt | None:
    """Get the paused attempt for a test with answers loaded."""
    return db.execute(
        select(TestAttempt)
        .options(selectinload(TestAttempt.answers))
        .where(
            TestAttempt.user_id == user_id,
            TestAttempt.test_id == test_id,
            TestAttempt.status == AttemptStatus.PAUSED.value,
        )
    ).scalar_one_or_none()


def update_attempt_status(
    db: DBSession, user_id: int, test_id: str, status: str
) -> TestAttempt:
    """Pause or resume the open attempt for a test."""
    if status not in OPEN_STATUSES:
        raise ValueError(f"Unsupported status: {status}")

    open_attempts = _open_attempts(db, user_id, test_id)
    if not open_attempts:
        raise HTTPException(status_code=404, detail="Attempt not found")
    attempt = open_attempts[0]

    now = datetime.now(timezone.utc)
    if status == AttemptStatus.PAUSED.value:
        attempt.paused_at = now
    elif attempt.paused_at is not None:
        attempt.resumed_at = now
    attempt.status = status

    db.commit()
    db.refresh(attempt)
    return attempt


def restart_attempt(db: DBSession, user_id: int, test_id: str) -> TestAttempt:
    """Discard the open attempt for a test."""
    open_attempts = _open_attempts(db, user_id, test_id)
    if not open_attempts:
        raise HTTPException(status_code=404, detail="Attempt not found")

    _close_without_result(db, open_attempts)
    db.commit()
    attempt = open_attempts[0]
    db.refresh(attempt)
    return attempt


def encode_answer(answer: Any) -> tuple[str, str | None]:
    """Serialize a submitted answer into (answer_ids, answer_text)."""
    values = list(answer) if isinstance(answer, (list, tuple)) else [answer]
    answer_text = answer if isinstance(answer, str) else None
    return json.dumps(values, ensure_ascii=False), answer_text


def upsert_answer(
    db: DBSession, attempt_id: str, question_id: str, answer: Any
) -> UserAnswer:
    """Insert or update the answer row for (attempt, question). Does not commit."""
    answer_ids, answer_text = encode_answer(answer)

    row = db.execute(
        select(UserAnswer).where(
            UserAnswer.attempt_id == attempt_id,
            UserAnswer.question_id == question_id,
        )
    ).scalar_one_or_none()

    if row is None:
        row = UserAnswer(attempt_id=attempt_id, question_id=question_id)
        db.add(row)

    row.answer_ids = answer_ids
    row.answer_text = answer_text
    row.updated_at = datetime.now(timezone.utc)
    db.flush()
    return row


def save_answer(
    db: DBSession,
    user_id: int,
    attempt_id: str,
    question_id: str,
    answer: Any,
) -> UserAnswer:
    """
    Record the answer to one question of an attempt.
    Saving again for the same question overwrites the previous answer.
    """
    attempt = get_owned_attempt(db, user_id, attempt_id)
    if attempt.is_completed:
        raise HTTPException(status_code=409, detail="Attempt is already completed")

    question = db.execute(
        select(Question).where(
            Question.id == question_id,
            Question.test_id == attempt.test_id,
        )
    ).scalar_one_or_none()
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found")

    try:
        row = upsert_answer(db, attempt_id, question_id, answer)
        db.commit()
    except IntegrityError:
        # A concurrent save inserted the row first; update it instead
        db.rollback()
        row = upsert_answer(db, attempt_id, question_id, answer)
        db.commit()

    db.refresh(row)
    return row


def get_attempt_answers(db: DBSession, attempt_id: str) -> list[UserAnswer]:
    """Get all answers for an attempt."""
    return list(
        db.execute(
            select(UserAnswer).where(UserAnswer.attempt_id == attempt_id)
        ).scalars().all()
    )
