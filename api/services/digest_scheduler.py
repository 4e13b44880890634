"""Hourly decision engine for the daily digest.

Every tick walks the enabled settings and, per user:

1. skips when the local hour is not the configured send hour;
2. skips when a report already went out for the local date;
3. otherwise claims the local date with a compare-and-set on
   ``last_sent_date`` and dispatches. A failed dispatch gives the claim
   back so the next tick within the same hour retries.

The claim is a single conditional UPDATE, so two overlapping ticks for the
same user cannot both dispatch. Users never share state; a slow or failing
dispatch for one user only turns into a ``failed`` count.
"""
import enum
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Protocol

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session as DBSession

from api.config import DEFAULT_TIMEZONE, DIGEST_DISPATCH_TIMEOUT_SECONDS
from api.models.db.daily_report import DailyReportLog, DailyReportSetting, DailyReportStatus
from api.services.digest_dispatcher import ERROR_MESSAGE_LIMIT, DigestDispatcher, DispatchOutcome
from api.utils.time_utils import local_date, local_hour

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DigestSetting:
    """Snapshot of one user's digest preferences."""

    user_id: int
    target_email: str
    enabled: bool
    send_hour: int
    time_zone: str
    last_sent_date: date | None = None


class SettingsStore(Protocol):
    """Persistence used by the scheduler."""

    def list_enabled(self) -> list[DigestSetting]: ...

    def get(self, user_id: int) -> DigestSetting | None: ...

    def claim_send(self, user_id: int, report_date: date) -> bool: ...

    def release_send(self, user_id: int, report_date: date, previous: date | None) -> None: ...

    def mark_sent(self, user_id: int, report_date: date) -> None: ...

    def append_log(
        self,
        user_id: int,
        target_email: str,
        report_date: date,
        status: DailyReportStatus,
        error: str | None = None,
    ) -> None: ...


class Action(str, enum.Enum):
    SKIP_HOUR = "skip_hour"
    SKIP_ALREADY_SENT = "skip_already_sent"
    DISPATCH = "dispatch"


@dataclass(frozen=True)
class Decision:
    action: Action
    report_date: date


def decide(setting: DigestSetting, now: datetime) -> Decision:
    """What a tick at `now` should do for this user.

    Raises:
        ValueError: the setting names an unknown time zone.
    """
    report_date = local_date(now, setting.time_zone)
    if local_hour(now, setting.time_zone) != setting.send_hour:
        return Decision(Action.SKIP_HOUR, report_date)
    if setting.last_sent_date == report_date:
        return Decision(Action.SKIP_ALREADY_SENT, report_date)
    return Decision(Action.DISPATCH, report_date)


@dataclass
class TickTotals:
    """Aggregate counts of one tick."""

    settings: int = 0
    sent: int = 0
    failed: int = 0
    skipped_by_hour: int = 0
    skipped_already_sent: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "settings": self.settings,
            "sent": self.sent,
            "failed": self.failed,
            "skippedByHour": self.skipped_by_hour,
            "skippedAlreadySent": self.skipped_already_sent,
        }


def _call_safely(func: Callable[[], DispatchOutcome]) -> DispatchOutcome:
    try:
        return func()
    except Exception as e:
        message = str(e) or e.__class__.__name__
        logger.warning("Daily report dispatch raised: %s", message)
        return DispatchOutcome(ok=False, error=message[:ERROR_MESSAGE_LIMIT])


def run_with_timeout(
    func: Callable[[], DispatchOutcome], timeout: float | None
) -> DispatchOutcome:
    """Run func in a daemon thread. A timeout or an exception becomes a failed outcome."""
    if not timeout or timeout <= 0:
        return _call_safely(func)

    box: list[DispatchOutcome] = []

    def _worker() -> None:
        box.append(_call_safely(func))

    thread = threading.Thread(target=_worker, name="digest_dispatch", daemon=True)
    thread.start()
    thread.join(timeout)
    if not box:
        return DispatchOutcome(ok=False, error=f"Dispatch timed out after {timeout}s")
    return box[0]


class DailyDigestScheduler:
    """Runs scheduler ticks and on-demand sends."""

    def __init__(
        self,
        store: SettingsStore,
        dispatcher: DigestDispatcher,
        dispatch_timeout: float | None = DIGEST_DISPATCH_TIMEOUT_SECONDS,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.dispatch_timeout = dispatch_timeout

    def _dispatch(self, setting: DigestSetting, report_date: date) -> DispatchOutcome:
        return run_with_timeout(
            lambda: self.dispatcher.dispatch(
                setting.user_id, setting.target_email, setting.time_zone, report_date
            ),
            self.dispatch_timeout,
        )

    def evaluate(self, setting: DigestSetting, now: datetime, totals: TickTotals) -> None:
        """Run the state machine for one user and update the totals."""
        try:
            decision = decide(setting, now)
        except ValueError as e:
            logger.warning("Daily report for user %s skipped: %s", setting.user_id, e)
            self.store.append_log(
                setting.user_id,
                setting.target_email,
                local_date(now, "UTC"),
                DailyReportStatus.FAILED,
                str(e),
            )
            totals.failed += 1
            return

        if decision.action is Action.SKIP_HOUR:
            totals.skipped_by_hour += 1
            return
        if decision.action is Action.SKIP_ALREADY_SENT:
            totals.skipped_already_sent += 1
            return

        if not self.store.claim_send(setting.user_id, decision.report_date):
            # Another tick got there first
            totals.skipped_already_sent += 1
            return

        outcome = self._dispatch(setting, decision.report_date)
        if outcome.ok:
            self.store.append_log(
                setting.user_id,
                setting.target_email,
                decision.report_date,
                DailyReportStatus.SENT,
            )
            totals.sent += 1
            return

        self.store.release_send(
            setting.user_id, decision.report_date, setting.last_sent_date
        )
        self.store.append_log(
            setting.user_id,
            setting.target_email,
            decision.report_date,
            DailyReportStatus.FAILED,
            outcome.error,
        )
        totals.failed += 1

    def run_tick(self, now: datetime | None = None) -> TickTotals:
        """One pass over every enabled setting."""
        now = now or datetime.now(timezone.utc)
        settings = self.store.list_enabled()
        totals = TickTotals(settings=len(settings))

        for setting in settings:
            self.evaluate(setting, now, totals)

        logger.info("Daily report tick: %s", totals.to_dict())
        return totals

    def send_now(
        self,
        user_id: int,
        fallback_email: str,
        now: datetime | None = None,
    ) -> tuple[DispatchOutcome, date]:
        """
        Send today's report immediately, ignoring send hour and last send.
        A successful send still counts as today's report.
        """
        now = now or datetime.now(timezone.utc)
        setting = self.store.get(user_id)
        time_zone = setting.time_zone if setting and setting.time_zone else DEFAULT_TIMEZONE
        target_email = (setting.target_email if setting else "") or fallback_email
        report_date = local_date(now, time_zone)

        snapshot = DigestSetting(
            user_id=user_id,
            target_email=target_email,
            enabled=setting.enabled if setting else False,
            send_hour=setting.send_hour if setting else 0,
            time_zone=time_zone,
        )
        outcome = self._dispatch(snapshot, report_date)

        if outcome.ok:
            self.store.append_log(user_id, target_email, report_date, DailyReportStatus.SENT)
            if setting is not None:
                self.store.mark_sent(user_id, report_date)
        else:
            self.store.append_log(
                user_id, target_email, report_date, DailyReportStatus.FAILED, outcome.error
            )
        return outcome, report_date


def _to_snapshot(row: DailyReportSetting) -> DigestSetting:
    return DigestSetting(
        user_id=row.user_id,
        target_email=row.target_email,
        enabled=row.enabled,
        send_hour=row.send_hour,
        time_zone=row.time_zone,
        last_sent_date=row.last_sent_date,
    )


class SqlSettingsStore:
    """SettingsStore backed by the daily_report_settings table."""

    def __init__(self, db: DBSession):
        self.db = db

    def list_enabled(self) -> list[DigestSetting]:
        rows = self.db.execute(
            select(DailyReportSetting)
            .where(
                DailyReportSetting.enabled.is_(True),
                DailyReportSetting.target_email != "",
            )
            .order_by(DailyReportSetting.user_id)
        ).scalars().all()
        return [_to_snapshot(row) for row in rows]

    def get(self, user_id: int) -> DigestSetting | None:
        row = self.db.execute(
            select(DailyReportSetting).where(DailyReportSetting.user_id == user_id)
        ).scalar_one_or_none()
        return _to_snapshot(row) if row else None

    def claim_send(self, user_id: int, report_date: date) -> bool:
        outcome = self.db.execute(
            update(DailyReportSetting)
            .where(
                DailyReportSetting.user_id == user_id,
                or_(
                    DailyReportSetting.last_sent_date.is_(None),
                    DailyReportSetting.last_sent_date != report_date,
                ),
            )
            .values(last_sent_date=report_date)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return outcome.rowcount == 1

    def release_send(self, user_id: int, report_date: date, previous: date | None) -> None:
        self.db.execute(
            update(DailyReportSetting)
            .where(
                DailyReportSetting.user_id == user_id,
                DailyReportSetting.last_sent_date == report_date,
            )
            .values(last_sent_date=previous)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

    def mark_sent(self, user_id: int, report_date: date) -> None:
        self.db.execute(
            update(DailyReportSetting)
            .where(DailyReportSetting.user_id == user_id)
            .values(last_sent_date=report_date)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

    def append_log(
        self,
        user_id: int,
        target_email: str,
        report_date: date,
        status: DailyReportStatus,
        error: str | None = None,
    ) -> None:
        self.db.add(
            DailyReportLog(
                user_id=user_id,
                target_email=target_email,
                report_date=report_date,
                status=status.value,
                error_message=error[:500] if error else None,
            )
        )
        self.db.commit()
