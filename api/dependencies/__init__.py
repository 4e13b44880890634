"""FastAPI dependencies."""
from api.dependencies.auth import get_current_user, require_cron_secret
from api.dependencies.digest import (
    get_digest_scheduler,
    get_notification_sender,
    get_scale_policy,
)

__all__ = [
    "get_current_user",
    "require_cron_secret",
    "get_digest_scheduler",
    "get_notification_sender",
    "get_scale_policy",
]
