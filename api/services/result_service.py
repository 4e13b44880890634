"""Service layer for scoring completed attempts."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession, selectinload

from api.config import PARTIAL_CREDIT_ENABLED
from api.models.db.attempt import AttemptStatus, Result, TestAttempt, UserStats
from api.models.db.catalog import Subject, Test
from api.services.answer_evaluator import (
    SubmittedAnswer,
    decode_submitted_answer,
    evaluate_question,
    partial_points,
    question_points,
)
from api.services.attempt_service import (
    get_attempt_answers,
    get_owned_attempt,
    get_test,
    upsert_answer,
)
from api.services.scoring import ScalePolicy, calculate_percentage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreSummary:
    """Totals of one scored attempt."""

    correct_answers: int
    total_questions: int
    earned_points: int
    max_points: int


def score_answers(
    questions: Iterable[Any],
    answers: Mapping[str, SubmittedAnswer],
    partial_credit: bool = PARTIAL_CREDIT_ENABLED,
) -> ScoreSummary:
    """Score answers against the questions, in question order.

    Unanswered questions count towards the totals and earn nothing.
    """
    correct = 0
    total = 0
    earned = 0
    max_points = 0

    for question in questions:
        total += 1
        points = question_points(question.type, question.points)
        max_points += points

        if question.id not in answers:
            continue

        evaluation = evaluate_question(question, answers[question.id])
        if evaluation.is_correct:
            correct += 1
            earned += points
        elif partial_credit:
            earned += partial_points(points, evaluation)

    return ScoreSummary(
        correct_answers=correct,
        total_questions=total,
        earned_points=earned,
        max_points=max_points,
    )


def _update_user_stats(db: DBSession, user_id: int, result: Result) -> None:
    stats = db.get(UserStats, user_id)
    accuracy = calculate_percentage(result.correct_answers, result.total_questions)

    if stats is None:
        stats = UserStats(
            user_id=user_id,
            total_tests=1,
            total_score=result.scaled_score,
            average_score=float(result.scaled_score),
            best_score=result.scaled_score,
            accuracy=accuracy,
        )
        db.add(stats)
        return

    stats.total_tests += 1
    stats.total_score += result.scaled_score
    stats.average_score = stats.total_score / stats.total_tests
    stats.best_score = max(stats.best_score, result.scaled_score)
    stats.accuracy = accuracy


def _claim_completion(db: DBSession, attempt_id: str, time_spent: int) -> bool:
    """Move the attempt to completed. False when it already was."""
    outcome = db.execute(
        update(TestAttempt)
        .where(
            TestAttempt.id == attempt_id,
            TestAttempt.status != AttemptStatus.COMPLETED.value,
        )
        .values(
            status=AttemptStatus.COMPLETED.value,
            completed_at=datetime.now(timezone.utc),
            total_time=time_spent,
        )
    )
    return outcome.rowcount == 1


def complete_attempt(
    db: DBSession,
    user_id: int,
    test_id: str,
    policy: ScalePolicy,
    attempt_id: str | None = None,
    answers: Iterable[tuple[str, Any]] | None = None,
    time_spent: int = 0,
) -> Result:
    """
    Complete an attempt and create its result.

    Args:
        db: Database session
        user_id: Owner of the attempt
        test_id: Test being submitted
        policy: Scaled score policy
        attempt_id: Attempt to complete; a new one is created when omitted
        answers: Optional (question_id, answer) pairs saved before scoring
        time_spent: Seconds spent on the attempt

    Raises:
        HTTPException: 404 for a missing test or attempt, 409 when the
        attempt was already completed.
    """
    test = get_test(db, test_id)

    if attempt_id:
        attempt = get_owned_attempt(db, user_id, attempt_id)
        if attempt.test_id != test_id:
            raise HTTPException(status_code=400, detail="Mismatched testId")
        if attempt.is_completed:
            raise HTTPException(status_code=409, detail="Attempt is already completed")
    else:
        attempt = TestAttempt(
            user_id=user_id,
            test_id=test_id,
            status=AttemptStatus.IN_PROGRESS.value,
        )
        db.add(attempt)
        db.flush()

    question_ids = {question.id for question in test.questions}
    for question_id, answer in answers or ():
        if question_id in question_ids:
            upsert_answer(db, attempt.id, question_id, answer)

    if not _claim_completion(db, attempt.id, max(0, time_spent)):
        db.rollback()
        raise HTTPException(status_code=409, detail="Attempt is already completed")

    stored = {
        row.question_id: decode_submitted_answer(row.answer_text, row.answer_ids)
        for row in get_attempt_answers(db, attempt.id)
    }
    summary = score_answers(test.questions, stored)

    subject_slug = test.subject.slug if test.subject else None
    result = Result(
        user_id=user_id,
        attempt_id=attempt.id,
        test_id=test_id,
        correct_answers=summary.correct_answers,
        total_questions=summary.total_questions,
        raw_score=summary.earned_points,
        max_score=summary.max_points,
        scaled_score=policy.scale(
            summary.earned_points, summary.max_points, subject_slug, test.type
        ),
        percentage=calculate_percentage(summary.correct_answers, summary.total_questions),
        time_spent=max(0, time_spent),
    )
    db.add(result)

    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Attempt is already completed")

    _update_user_stats(db, user_id, result)
    db.commit()
    db.refresh(result)

    logger.info(
        "Attempt %s completed: %d/%d correct, %d/%d points",
        attempt.id,
        summary.correct_answers,
        summary.total_questions,
        summary.earned_points,
        summary.max_points,
    )
    return result


def list_results(
    db: DBSession,
    user_id: int,
    subject: str | None = None,
) -> list[Result]:
    """Get results of a user, newest first, optionally by subject slug."""
    query = (
        select(Result)
        .options(selectinload(Result.test).selectinload(Test.subject))
        .where(Result.user_id == user_id)
    )
    if subject:
        query = query.join(Test, Result.test_id == Test.id).join(
            Subject, Test.subject_id == Subject.id
        ).where(Subject.slug == subject)

    query = query.order_by(Result.created_at.desc(), Result.id.desc())
    return list(db.execute(query).scalars().all())


def get_result(db: DBSession, user_id: int, result_id: int) -> Result:
    """Get a result of the user or 404."""
    result = db.execute(
        select(Result)
        .options(selectinload(Result.test).selectinload(Test.subject))
        .where(Result.id == result_id, Result.user_id == user_id)
    ).scalar_one_or_none()
    if result is None:
        raise HTTPException(status_code=404, detail="Result not found")
    return result
