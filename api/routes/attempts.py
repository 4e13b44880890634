"""Attempt lifecycle and answer submission endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session as DbSession

from api.database import get_db
from api.dependencies import get_current_user, get_scale_policy
from api.models import (
    AnswerSubmitRequest,
    AttemptResponse,
    AttemptUpdateRequest,
    SubmitTestRequest,
    SubmitTestResponse,
    UserAnswerResponse,
)
from api.models.db.user import User
from api.routes.serializers import answer_to_response, attempt_to_response, result_to_response
from api.services import attempt_service, result_service
from api.services.scoring import ScalePolicy
from api.utils import validate_id

router = APIRouter(prefix="/api", tags=["attempts"])


@router.post(
    "/tests/{test_id}/attempt",
    response_model=AttemptResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_attempt(
    test_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> AttemptResponse:
    """Start a new attempt, closing any unfinished one for the test."""
    test_id = validate_id("testId", test_id)
    attempt = attempt_service.start_attempt(db, current_user.id, test_id)
    return attempt_to_response(attempt)


@router.get("/tests/{test_id}/attempt", response_model=AttemptResponse)
def get_paused_attempt(
    test_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> AttemptResponse:
    """Get the paused attempt for a test with its saved answers."""
    test_id = validate_id("testId", test_id)
    attempt = attempt_service.get_paused_attempt(db, current_user.id, test_id)
    if attempt is None:
        raise HTTPException(status_code=404, detail="No paused attempt found")
    return attempt_to_response(attempt, include_answers=True)


@router.put("/tests/{test_id}/attempt", response_model=AttemptResponse)
def update_attempt(
    test_id: str,
    payload: AttemptUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> AttemptResponse:
    """Pause, resume or restart the open attempt."""
    test_id = validate_id("testId", test_id)

    if payload.action == "restart":
        attempt = attempt_service.restart_attempt(db, current_user.id, test_id)
        return attempt_to_response(attempt)

    if payload.status is None:
        raise HTTPException(status_code=400, detail="status or action is required")

    attempt = attempt_service.update_attempt_status(
        db, current_user.id, test_id, payload.status
    )
    return attempt_to_response(attempt)


@router.post(
    "/attempts/{attempt_id}/answers/{question_id}",
    response_model=UserAnswerResponse,
)
def save_answer(
    attempt_id: str,
    question_id: str,
    payload: AnswerSubmitRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> UserAnswerResponse:
    """Save (or overwrite) the answer to one question."""
    attempt_id = validate_id("attemptId", attempt_id)
    question_id = validate_id("questionId", question_id)
    row = attempt_service.save_answer(
        db, current_user.id, attempt_id, question_id, payload.answer
    )
    return answer_to_response(row)


@router.post("/tests/{test_id}/submit", response_model=SubmitTestResponse)
def submit_test(
    test_id: str,
    payload: SubmitTestRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    policy: Annotated[ScalePolicy, Depends(get_scale_policy)],
) -> SubmitTestResponse:
    """Complete an attempt and score it. A completed attempt cannot be submitted again."""
    test_id = validate_id("testId", test_id)
    attempt_id = validate_id("attemptId", payload.attemptId) if payload.attemptId else None

    result = result_service.complete_attempt(
        db,
        current_user.id,
        test_id,
        policy,
        attempt_id=attempt_id,
        answers=[(item.questionId, item.answer) for item in payload.answers],
        time_spent=payload.timeSpent,
    )
    result = result_service.get_result(db, current_user.id, result.id)
    return SubmitTestResponse(
        result=result_to_response(result),
        attempt=attempt_to_response(result.attempt),
    )
