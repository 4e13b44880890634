"""Gathers a user's daily metrics and hands them to the notification sender."""
import logging
from dataclasses import dataclass
from datetime import date

from api.services.notification_service import NotificationSender
from api.services.report_metrics import DigestMetrics, MetricsProvider

logger = logging.getLogger(__name__)

ERROR_MESSAGE_LIMIT = 500


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of one dispatch."""

    ok: bool
    metrics: DigestMetrics | None = None
    error: str | None = None


class DigestDispatcher:
    """
    Builds and delivers one daily report.

    Keeps no state of its own. Calling it twice for the same user and day
    sends twice; the once-per-day guarantee belongs to the scheduler.
    """

    def __init__(self, metrics_provider: MetricsProvider, sender: NotificationSender):
        self.metrics_provider = metrics_provider
        self.sender = sender

    def dispatch(
        self,
        user_id: int,
        target_email: str,
        time_zone: str,
        report_date: date,
    ) -> DispatchOutcome:
        """Collect metrics and send. Failures are returned, never raised."""
        try:
            metrics = self.metrics_provider.collect(user_id, report_date, time_zone)
            self.sender.send(target_email, metrics)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning(
                "Daily report for user %s on %s failed: %s", user_id, report_date, message
            )
            return DispatchOutcome(ok=False, error=message[:ERROR_MESSAGE_LIMIT])
        return DispatchOutcome(ok=True, metrics=metrics)
