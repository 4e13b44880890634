from datetime import date, datetime, timezone
from types import SimpleNamespace

from api.services import attempt_service, result_service, review_service
from api.services.notification_service import build_message, render_html, render_text
from api.services.report_metrics import SqlMetricsProvider, build_digest_metrics, current_streak
from api.services.scoring import LinearScalePolicy

REPORT_DATE = date(2024, 3, 10)


def _item(item_id: str, studied: date, subject: str = "Math", topic: str = "Fractions"):
    return SimpleNamespace(id=item_id, studied_date=studied, subject=subject, topic=topic)


def _completion(item_id: str, review_date: date, interval: int, created_at: datetime):
    return SimpleNamespace(
        review_plan_item_id=item_id,
        review_date=review_date,
        interval_days=interval,
        created_at=created_at,
    )


def test_current_streak_counts_back_from_today() -> None:
    days = [date(2024, 3, 8), date(2024, 3, 9), date(2024, 3, 10), date(2024, 3, 5)]
    assert current_streak(days, REPORT_DATE) == 3
    assert current_streak(days, date(2024, 3, 11)) == 0


def test_review_counts_and_hard_flags() -> None:
    # Checkpoints on Mar 3 (0), Mar 6 (3), Mar 10 (7), ...
    items = [_item("a", date(2024, 3, 3))]
    completions = [
        _completion("a", date(2024, 3, 3), 0, datetime(2024, 3, 3, 10, 0, tzinfo=timezone.utc)),
    ]

    metrics = build_digest_metrics(
        report_date=REPORT_DATE,
        time_zone="UTC",
        student_name="Olena",
        items=items,
        completions=completions,
        results=[],
        intervals=(0, 3, 7, 14),
    )

    assert metrics.total_review_planned == 4
    assert metrics.total_review_completed == 1
    assert metrics.total_review_pending == 3
    assert metrics.due_today == 1
    assert metrics.overdue == 1
    assert metrics.completed_today_by_action == 0
    assert metrics.top_overdue_topics == [{"label": "Math: Fractions", "count": 1}]
    assert metrics.hard_flags == [
        "Overdue reviews detected: 1",
        "No completed review actions today",
        "No completed tests today",
    ]


def test_results_are_bucketed_by_local_day() -> None:
    results = [
        # 23:30 UTC on Mar 9 is already Mar 10 in Kyiv
        SimpleNamespace(
            created_at=datetime(2024, 3, 9, 23, 30, tzinfo=timezone.utc),
            percentage=80.0,
            scaled_score=170,
        ),
        SimpleNamespace(
            created_at=datetime(2024, 3, 10, 9, 0),
            percentage=65.0,
            scaled_score=150,
        ),
        SimpleNamespace(
            created_at=datetime(2024, 3, 8, 9, 0, tzinfo=timezone.utc),
            percentage=10.0,
            scaled_score=200,
        ),
    ]

    metrics = build_digest_metrics(
        report_date=REPORT_DATE,
        time_zone="Europe/Kyiv",
        student_name="Olena",
        items=[],
        completions=[],
        results=results,
    )

    assert metrics.tests_completed_today == 2
    assert metrics.average_test_percent_today == 73
    assert metrics.best_scaled_score_today == 170
    assert "No completed tests today" not in metrics.hard_flags


def test_sql_provider_collects_from_database(db, session_factory, user, sample_test) -> None:
    today = datetime.now(timezone.utc).date()
    item = review_service.create_item(db, user.id, "Math", "Fractions", today)
    review_service.toggle_completion(db, user.id, item.id, today, 0, True)
    choice = sample_test.questions[0]
    wrong = next(a.id for a in choice.answers if not a.is_correct)
    attempt = attempt_service.start_attempt(db, user.id, sample_test.id)
    attempt_service.save_answer(db, user.id, attempt.id, choice.id, wrong)
    result_service.complete_attempt(
        db, user.id, sample_test.id, LinearScalePolicy(), attempt_id=attempt.id
    )

    metrics = SqlMetricsProvider(session_factory).collect(user.id, today, "UTC")

    assert metrics.student_name == "Olena"
    assert metrics.total_review_completed == 1
    assert metrics.completed_today_by_action == 1
    assert metrics.current_review_streak == 1
    assert metrics.tests_completed_today == 1
    assert metrics.open_mistakes == 1
    assert metrics.to_dict()["report_date"] == today.isoformat()


def test_rendered_digest_escapes_html() -> None:
    metrics = build_digest_metrics(
        report_date=REPORT_DATE,
        time_zone="UTC",
        student_name="<Olena>",
        items=[_item("a", date(2024, 3, 1), topic="<b>Tags</b>")],
        completions=[],
        results=[],
        intervals=(0,),
    )

    text = render_text(metrics)
    html = render_html(metrics)
    assert "Student: <Olena>" in text
    assert "&lt;Olena&gt;" in html
    assert "&lt;b&gt;Tags&lt;/b&gt;" in html

    message = build_message("noreply@example.com", "parent@example.com", metrics)
    assert message["To"] == "parent@example.com"
    assert message["Subject"] == "Daily study report - 2024-03-10"
    assert message.is_multipart()
