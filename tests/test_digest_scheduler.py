import threading
from dataclasses import replace
from datetime import date, datetime, timezone

from api.models.db import DailyReportLog, DailyReportSetting, DailyReportStatus
from api.services.digest_dispatcher import DigestDispatcher, DispatchOutcome
from api.services.digest_scheduler import (
    Action,
    DailyDigestScheduler,
    Decision,
    DigestSetting,
    SqlSettingsStore,
    decide,
    run_with_timeout,
)
from api.services.report_metrics import DigestMetrics

# 18:00 UTC is 20:00 in Kyiv in January (UTC+2)
KYIV_20 = datetime(2024, 1, 15, 18, 0, tzinfo=timezone.utc)
KYIV_19 = datetime(2024, 1, 15, 17, 0, tzinfo=timezone.utc)
REPORT_DATE = date(2024, 1, 15)


class FakeStore:
    def __init__(self, *settings: DigestSetting, claims: bool = True) -> None:
        self.settings = {s.user_id: s for s in settings}
        self.logs: list[tuple[int, date, DailyReportStatus, str | None]] = []
        self.claims = claims

    def list_enabled(self) -> list[DigestSetting]:
        return [s for s in self.settings.values() if s.enabled]

    def get(self, user_id: int) -> DigestSetting | None:
        return self.settings.get(user_id)

    def claim_send(self, user_id: int, report_date: date) -> bool:
        current = self.settings[user_id]
        if not self.claims or current.last_sent_date == report_date:
            return False
        self.settings[user_id] = replace(current, last_sent_date=report_date)
        return True

    def release_send(self, user_id: int, report_date: date, previous: date | None) -> None:
        current = self.settings[user_id]
        if current.last_sent_date == report_date:
            self.settings[user_id] = replace(current, last_sent_date=previous)

    def mark_sent(self, user_id: int, report_date: date) -> None:
        self.settings[user_id] = replace(self.settings[user_id], last_sent_date=report_date)

    def append_log(self, user_id, target_email, report_date, status, error=None) -> None:
        self.logs.append((user_id, report_date, status, error))


class FakeDispatcher:
    def __init__(self, *outcomes: DispatchOutcome) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[tuple[int, str, str, date]] = []

    def dispatch(self, user_id, target_email, time_zone, report_date) -> DispatchOutcome:
        self.calls.append((user_id, target_email, time_zone, report_date))
        if self.outcomes:
            return self.outcomes.pop(0)
        return DispatchOutcome(ok=True)


def _setting(**overrides) -> DigestSetting:
    values = dict(
        user_id=1,
        target_email="parent@example.com",
        enabled=True,
        send_hour=20,
        time_zone="Europe/Kyiv",
    )
    values.update(overrides)
    return DigestSetting(**values)


def test_decide_uses_local_hour_and_date() -> None:
    assert decide(_setting(), KYIV_19).action is Action.SKIP_HOUR
    assert decide(_setting(), KYIV_20) == Decision(Action.DISPATCH, REPORT_DATE)
    sent = _setting(last_sent_date=REPORT_DATE)
    assert decide(sent, KYIV_20).action is Action.SKIP_ALREADY_SENT


def test_local_date_differs_from_utc_date() -> None:
    setting = _setting(time_zone="America/New_York", send_hour=23)
    # 04:00 UTC on the 16th is 23:00 on the 15th in New York
    decision = decide(setting, datetime(2024, 1, 16, 4, 0, tzinfo=timezone.utc))
    assert decision.action is Action.DISPATCH
    assert decision.report_date == date(2024, 1, 15)


def test_tick_skips_outside_send_hour() -> None:
    store = FakeStore(_setting())
    dispatcher = FakeDispatcher()

    totals = DailyDigestScheduler(store, dispatcher, dispatch_timeout=None).run_tick(KYIV_19)

    assert totals.to_dict() == {
        "settings": 1,
        "sent": 0,
        "failed": 0,
        "skippedByHour": 1,
        "skippedAlreadySent": 0,
    }
    assert dispatcher.calls == []


def test_tick_sends_once_per_local_day() -> None:
    store = FakeStore(_setting())
    dispatcher = FakeDispatcher()
    scheduler = DailyDigestScheduler(store, dispatcher, dispatch_timeout=None)

    first = scheduler.run_tick(KYIV_20)
    second = scheduler.run_tick(KYIV_20.replace(minute=30))

    assert first.sent == 1
    assert second.sent == 0
    assert second.skipped_already_sent == 1
    assert len(dispatcher.calls) == 1
    assert store.settings[1].last_sent_date == REPORT_DATE
    assert store.logs == [(1, REPORT_DATE, DailyReportStatus.SENT, None)]


def test_failed_dispatch_is_retried_next_tick() -> None:
    store = FakeStore(_setting(last_sent_date=date(2024, 1, 14)))
    dispatcher = FakeDispatcher(DispatchOutcome(ok=False, error="SMTP down"))
    scheduler = DailyDigestScheduler(store, dispatcher, dispatch_timeout=None)

    failed = scheduler.run_tick(KYIV_20)
    assert failed.failed == 1
    assert store.settings[1].last_sent_date == date(2024, 1, 14)
    assert store.logs[-1] == (1, REPORT_DATE, DailyReportStatus.FAILED, "SMTP down")

    retried = scheduler.run_tick(KYIV_20.replace(minute=45))
    assert retried.sent == 1
    assert store.settings[1].last_sent_date == REPORT_DATE
    assert len(dispatcher.calls) == 2


def test_lost_claim_does_not_dispatch() -> None:
    store = FakeStore(_setting(), claims=False)
    dispatcher = FakeDispatcher()

    totals = DailyDigestScheduler(store, dispatcher, dispatch_timeout=None).run_tick(KYIV_20)

    assert totals.skipped_already_sent == 1
    assert dispatcher.calls == []


def test_users_are_isolated() -> None:
    store = FakeStore(
        _setting(user_id=1),
        _setting(user_id=2, target_email="two@example.com"),
        _setting(user_id=3, time_zone="Mars/Olympus"),
        _setting(user_id=4, enabled=False),
    )
    dispatcher = FakeDispatcher(DispatchOutcome(ok=False, error="boom"), DispatchOutcome(ok=True))

    totals = DailyDigestScheduler(store, dispatcher, dispatch_timeout=None).run_tick(KYIV_20)

    assert totals.settings == 3
    assert totals.sent == 1
    assert totals.failed == 2
    assert store.settings[2].last_sent_date == REPORT_DATE
    assert store.settings[1].last_sent_date is None
    assert [call[0] for call in dispatcher.calls] == [1, 2]


def test_run_with_timeout_turns_hang_into_failure() -> None:
    release = threading.Event()

    def _hang() -> DispatchOutcome:
        release.wait(5)
        return DispatchOutcome(ok=True)

    outcome = run_with_timeout(_hang, 0.05)
    release.set()

    assert not outcome.ok
    assert "timed out" in outcome.error
    assert run_with_timeout(lambda: DispatchOutcome(ok=True), 1).ok


def test_send_now_ignores_hour_and_marks_day() -> None:
    store = FakeStore(_setting(enabled=False))
    dispatcher = FakeDispatcher()
    scheduler = DailyDigestScheduler(store, dispatcher, dispatch_timeout=None)

    outcome, report_date = scheduler.send_now(1, "fallback@example.com", KYIV_19)

    assert outcome.ok
    assert report_date == REPORT_DATE
    assert dispatcher.calls == [(1, "parent@example.com", "Europe/Kyiv", REPORT_DATE)]
    assert store.settings[1].last_sent_date == REPORT_DATE


def test_send_now_without_setting_uses_fallback_email() -> None:
    store = FakeStore()
    dispatcher = FakeDispatcher(DispatchOutcome(ok=False, error="no smtp"))
    scheduler = DailyDigestScheduler(store, dispatcher, dispatch_timeout=None)

    outcome, _ = scheduler.send_now(7, "student@example.com", KYIV_20)

    assert not outcome.ok
    assert dispatcher.calls[0][1] == "student@example.com"
    assert store.logs == [(7, REPORT_DATE, DailyReportStatus.FAILED, "no smtp")]


class _Provider:
    def collect(self, user_id, report_date, time_zone) -> DigestMetrics:
        return DigestMetrics(report_date=report_date, time_zone=time_zone, student_name="Olena")


class _BrokenSender:
    def send(self, target_email, metrics) -> None:
        raise ConnectionError("x" * 600)


def test_dispatcher_returns_failures(sender) -> None:
    ok = DigestDispatcher(_Provider(), sender).dispatch(1, "a@example.com", "UTC", REPORT_DATE)
    assert ok.ok
    assert sender.sent[0][0] == "a@example.com"

    failed = DigestDispatcher(_Provider(), _BrokenSender()).dispatch(
        1, "a@example.com", "UTC", REPORT_DATE
    )
    assert not failed.ok
    assert len(failed.error) == 500


def test_sql_store_claim_is_compare_and_set(db, user) -> None:
    db.add(
        DailyReportSetting(
            user_id=user.id,
            target_email="parent@example.com",
            enabled=True,
            send_hour=20,
            time_zone="Europe/Kyiv",
        )
    )
    db.commit()
    store = SqlSettingsStore(db)

    assert [s.user_id for s in store.list_enabled()] == [user.id]
    assert store.claim_send(user.id, REPORT_DATE)
    assert not store.claim_send(user.id, REPORT_DATE)

    store.release_send(user.id, REPORT_DATE, None)
    assert store.get(user.id).last_sent_date is None
    assert store.claim_send(user.id, REPORT_DATE)

    store.append_log(user.id, "parent@example.com", REPORT_DATE, DailyReportStatus.FAILED, "e" * 600)
    log = db.query(DailyReportLog).one()
    assert log.status == "failed"
    assert len(log.error_message) == 500


def test_raising_dispatch_is_a_failure_not_a_timeout() -> None:
    def _boom() -> DispatchOutcome:
        raise RuntimeError("metrics query failed")

    threaded = run_with_timeout(_boom, 1)
    inline = run_with_timeout(_boom, None)

    assert not threaded.ok
    assert threaded.error == "metrics query failed"
    assert inline == threaded


class _RaisingDispatcher:
    def dispatch(self, user_id, target_email, time_zone, report_date) -> DispatchOutcome:
        if user_id == 1:
            raise RuntimeError("boom")
        return DispatchOutcome(ok=True)


def test_raising_dispatcher_does_not_abort_tick() -> None:
    store = FakeStore(_setting(user_id=1), _setting(user_id=2))
    scheduler = DailyDigestScheduler(store, _RaisingDispatcher(), dispatch_timeout=None)

    totals = scheduler.run_tick(KYIV_20)

    assert totals.failed == 1
    assert totals.sent == 1
    assert store.settings[1].last_sent_date is None
    assert store.logs[0] == (1, REPORT_DATE, DailyReportStatus.FAILED, "boom")
