"""Wiring of the daily digest collaborators."""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session as DbSession, sessionmaker

from api.database import get_db, get_session_factory
from api.services.digest_dispatcher import DigestDispatcher
from api.services.digest_scheduler import DailyDigestScheduler, SqlSettingsStore
from api.services.notification_service import NotificationSender, SmtpNotificationSender
from api.services.report_metrics import SqlMetricsProvider
from api.services.scoring import NmtScalePolicy, ScalePolicy


def get_notification_sender() -> NotificationSender:
    """Notification transport."""
    return SmtpNotificationSender()


def get_scale_policy() -> ScalePolicy:
    """Scaled score policy used when results are created."""
    return NmtScalePolicy()


def build_scheduler(
    db: DbSession, session_factory: sessionmaker, sender: NotificationSender
) -> DailyDigestScheduler:
    """Assemble a scheduler over the given session and transport."""
    dispatcher = DigestDispatcher(SqlMetricsProvider(session_factory), sender)
    return DailyDigestScheduler(SqlSettingsStore(db), dispatcher)


def get_digest_scheduler(
    db: Annotated[DbSession, Depends(get_db)],
    session_factory: Annotated[sessionmaker, Depends(get_session_factory)],
    sender: Annotated[NotificationSender, Depends(get_notification_sender)],
) -> DailyDigestScheduler:
    """Scheduler bound to the request's database session."""
    return build_scheduler(db, session_factory, sender)
