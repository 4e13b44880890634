"""Result endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session as DbSession

from api.database import get_db
from api.dependencies import get_current_user
from api.models import ResultResponse
from api.models.db.user import User
from api.routes.serializers import result_to_response
from api.services import result_service

router = APIRouter(prefix="/api/results", tags=["results"])


@router.get("", response_model=list[ResultResponse])
def list_results(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    subject: str | None = Query(None),
) -> list[ResultResponse]:
    """List the user's results, newest first."""
    results = result_service.list_results(db, current_user.id, subject)
    return [result_to_response(result) for result in results]


@router.get("/{result_id}", response_model=ResultResponse)
def get_result(
    result_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> ResultResponse:
    """Get one result."""
    return result_to_response(result_service.get_result(db, current_user.id, result_id))
