"""Activity metrics for the daily digest."""
from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from api.config import RESULTS_METRICS_WINDOW, REVIEW_INTERVALS
from api.models.db.attempt import Result
from api.models.db.review import ReviewCompletion, ReviewPlanItem
from api.models.db.user import User
from api.services.mistake_service import count_mistakes
from api.services.review_service import completion_key, review_date_for
from api.utils.time_utils import local_date

TOP_OVERDUE_LIMIT = 6


@dataclass
class DigestMetrics:
    """Everything the daily report shows for one user and day."""

    report_date: date
    time_zone: str
    student_name: str
    total_review_planned: int = 0
    total_review_completed: int = 0
    total_review_pending: int = 0
    due_today: int = 0
    overdue: int = 0
    completed_today_by_schedule: int = 0
    completed_today_by_action: int = 0
    current_review_streak: int = 0
    tests_completed_today: int = 0
    average_test_percent_today: int = 0
    best_scaled_score_today: int = 0
    open_mistakes: int = 0
    hard_flags: list[str] = field(default_factory=list)
    top_overdue_topics: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["report_date"] = self.report_date.isoformat()
        return payload


class MetricsProvider(Protocol):
    """Source of digest metrics."""

    def collect(self, user_id: int, report_date: date, time_zone: str) -> DigestMetrics: ...


def current_streak(days: Iterable[date], current_day: date) -> int:
    """Consecutive days with activity ending on current_day."""
    active = set(days)
    streak = 0
    cursor = current_day
    while cursor in active:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def build_digest_metrics(
    report_date: date,
    time_zone: str,
    student_name: str,
    items: Iterable[Any],
    completions: Iterable[Any],
    results: Iterable[Any],
    open_mistakes: int = 0,
    intervals: tuple[int, ...] = REVIEW_INTERVALS,
) -> DigestMetrics:
    """Compute digest metrics from already loaded rows."""
    completions = list(completions)
    done_keys = {
        completion_key(c.review_plan_item_id, c.review_date, c.interval_days)
        for c in completions
    }

    metrics = DigestMetrics(
        report_date=report_date,
        time_zone=time_zone,
        student_name=student_name,
        open_mistakes=open_mistakes,
    )

    overdue_topics: Counter[str] = Counter()
    for item in items:
        for interval in intervals:
            review_date = review_date_for(item.studied_date, interval)
            metrics.total_review_planned += 1
            if completion_key(item.id, review_date, interval) in done_keys:
                continue
            if review_date == report_date:
                metrics.due_today += 1
            elif review_date < report_date:
                metrics.overdue += 1
                overdue_topics[f"{item.subject}: {item.topic}"] += 1

    metrics.total_review_completed = len(completions)
    metrics.total_review_pending = max(
        0, metrics.total_review_planned - metrics.total_review_completed
    )
    metrics.completed_today_by_schedule = sum(
        1 for c in completions if c.review_date == report_date
    )
    metrics.completed_today_by_action = sum(
        1 for c in completions if local_date(c.created_at, time_zone) == report_date
    )
    metrics.current_review_streak = current_streak(
        (c.review_date for c in completions), report_date
    )

    today = [r for r in results if local_date(r.created_at, time_zone) == report_date]
    metrics.tests_completed_today = len(today)
    if today:
        metrics.average_test_percent_today = int(
            sum(r.percentage for r in today) / len(today) + 0.5
        )
        metrics.best_scaled_score_today = max(r.scaled_score for r in today)

    if metrics.overdue > 0:
        metrics.hard_flags.append(f"Overdue reviews detected: {metrics.overdue}")
    if metrics.completed_today_by_action == 0:
        metrics.hard_flags.append("No completed review actions today")
    if metrics.tests_completed_today == 0:
        metrics.hard_flags.append("No completed tests today")

    metrics.top_overdue_topics = [
        {"label": label, "count": count}
        for label, count in overdue_topics.most_common(TOP_OVERDUE_LIMIT)
    ]
    return metrics


class SqlMetricsProvider:
    """Reads metrics from the database, one short-lived session per call."""

    def __init__(self, session_factory: sessionmaker, results_window: int = RESULTS_METRICS_WINDOW):
        self.session_factory = session_factory
        self.results_window = results_window

    def collect(self, user_id: int, report_date: date, time_zone: str) -> DigestMetrics:
        db = self.session_factory()
        try:
            user = db.get(User, user_id)
            items = db.execute(
                select(ReviewPlanItem).where(ReviewPlanItem.user_id == user_id)
            ).scalars().all()
            completions = db.execute(
                select(ReviewCompletion).where(ReviewCompletion.user_id == user_id)
            ).scalars().all()
            results = db.execute(
                select(Result)
                .where(Result.user_id == user_id)
                .order_by(Result.created_at.desc())
                .limit(self.results_window)
            ).scalars().all()

            student_name = "Student"
            if user is not None:
                student_name = user.display_name or user.email or student_name

            return build_digest_metrics(
                report_date=report_date,
                time_zone=time_zone,
                student_name=student_name,
                items=items,
                completions=completions,
                results=results,
                open_mistakes=count_mistakes(db, user_id),
            )
        finally:
            db.close()
