"""Authentication dependencies for FastAPI."""
import hmac
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session as DbSession

from api import config
from api.database import get_db
from api.models.db.user import User
from api.services.auth_service import get_user_by_id, verify_token

# HTTP Bearer scheme for JWT
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[DbSession, Depends(get_db)],
) -> User:
    """Get the current authenticated user.

    Raises:
        HTTPException: 401 if not authenticated or token is invalid.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("sub")
    if user_id is None:
        raise _unauthorized("Invalid token payload")

    try:
        user = get_user_by_id(db, int(user_id))
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token payload")

    if user is None:
        raise _unauthorized("User not found")

    if not user.is_active:
        raise _unauthorized("User is inactive")

    return user


async def require_cron_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> None:
    """Guard the scheduler trigger with CRON_SECRET when it is configured."""
    secret = config.CRON_SECRET
    if not secret:
        return
    provided = credentials.credentials if credentials else ""
    if not hmac.compare_digest(provided.encode("utf-8"), secret.encode("utf-8")):
        raise _unauthorized("Unauthorized cron request")
