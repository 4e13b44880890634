"""Mistakes endpoint."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session as DbSession

from api.database import get_db
from api.dependencies import get_current_user
from api.models import MistakeResponse
from api.models.db.user import User
from api.services.mistake_service import MistakeFilters, get_mistakes

router = APIRouter(prefix="/api/mistakes", tags=["mistakes"])


@router.get("", response_model=list[MistakeResponse])
def list_mistakes(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    subject: str | None = Query(None),
    type: str | None = Query(None),
    search: str | None = Query(None),
) -> list[MistakeResponse]:
    """Questions whose most recent answer was wrong.

    Args:
        subject: Optional subject slug
        type: Optional question type
        search: Optional case-insensitive substring of the question text
    """
    filters = MistakeFilters(
        subject=subject or None,
        question_type=type or None,
        search=search.strip() if search and search.strip() else None,
    )
    return [
        MistakeResponse(
            id=item.id,
            questionId=item.question_id,
            questionText=item.question_text,
            imageUrl=item.image_url,
            questionType=item.question_type,
            testId=item.test_id,
            testTitle=item.test_title,
            subjectSlug=item.subject_slug,
            subjectName=item.subject_name,
            userAnswer=item.user_answer,
            correctAnswer=item.correct_answer,
            createdAt=item.created_at,
        )
        for item in get_mistakes(db, current_user.id, filters)
    ]
