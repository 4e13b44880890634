"""Delivery of the daily digest by email."""
import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from api import config
from api.services.report_metrics import DigestMetrics

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    """Delivers a rendered digest to an address. Raises on failure."""

    def send(self, target_email: str, metrics: DigestMetrics) -> None: ...


def render_subject(metrics: DigestMetrics) -> str:
    return f"Daily study report - {metrics.report_date.isoformat()}"


def render_text(metrics: DigestMetrics) -> str:
    """Plain text version of the digest."""
    lines = [
        "Daily Study Report",
        f"Date: {metrics.report_date.isoformat()} ({metrics.time_zone})",
        f"Student: {metrics.student_name}",
        "",
        "Review performance",
        f"  Planned: {metrics.total_review_planned}",
        f"  Completed: {metrics.total_review_completed}",
        f"  Pending: {metrics.total_review_pending}",
        f"  Due today: {metrics.due_today}",
        f"  Overdue: {metrics.overdue}",
        f"  Completed today (scheduled): {metrics.completed_today_by_schedule}",
        f"  Completed today (actual actions): {metrics.completed_today_by_action}",
        f"  Current review streak: {metrics.current_review_streak} day(s)",
        "",
        "Testing",
        f"  Tests completed today: {metrics.tests_completed_today}",
        f"  Average test percent today: {metrics.average_test_percent_today}%",
        f"  Best scaled score today: {metrics.best_scaled_score_today}",
        f"  Open mistakes: {metrics.open_mistakes}",
        "",
        "Hard mode alerts",
    ]
    if metrics.hard_flags:
        lines.extend(f"  {i}. {flag}" for i, flag in enumerate(metrics.hard_flags, 1))
    else:
        lines.append("  No hard alerts today. Keep pace.")

    lines.extend(["", "Top overdue topics"])
    if metrics.top_overdue_topics:
        lines.extend(
            f"  {i}. {topic['label']} - {topic['count']}"
            for i, topic in enumerate(metrics.top_overdue_topics, 1)
        )
    else:
        lines.append("  No overdue topics.")
    return "\n".join(lines) + "\n"


def render_html(metrics: DigestMetrics) -> str:
    """HTML version of the digest."""
    esc = html.escape
    if metrics.hard_flags:
        flags_html = "<ul>" + "".join(f"<li>{esc(f)}</li>" for f in metrics.hard_flags) + "</ul>"
    else:
        flags_html = "<p>No hard alerts today.</p>"
    if metrics.top_overdue_topics:
        overdue_html = "<ul>" + "".join(
            f"<li>{esc(t['label'])} - {t['count']}</li>" for t in metrics.top_overdue_topics
        ) + "</ul>"
    else:
        overdue_html = "<p>No overdue topics.</p>"

    return f"""\
<div style="font-family: Arial, sans-serif; color:#111827; line-height:1.5; max-width:720px; margin:0 auto;">
  <h2 style="margin-bottom:8px;">Daily Study Report</h2>
  <p style="margin-top:0; color:#475569;">Date: {metrics.report_date.isoformat()} ({esc(metrics.time_zone)})</p>
  <p><strong>Student:</strong> {esc(metrics.student_name)}</p>
  <h3>Review performance</h3>
  <p>Planned: <strong>{metrics.total_review_planned}</strong>, Completed: <strong>{metrics.total_review_completed}</strong>, Pending: <strong>{metrics.total_review_pending}</strong></p>
  <p>Due today: <strong>{metrics.due_today}</strong>, Overdue: <strong>{metrics.overdue}</strong></p>
  <h3>Testing</h3>
  <p>Tests today: <strong>{metrics.tests_completed_today}</strong>, Average: <strong>{metrics.average_test_percent_today}%</strong>, Best scaled score: <strong>{metrics.best_scaled_score_today}</strong></p>
  <p>Open mistakes: <strong>{metrics.open_mistakes}</strong></p>
  <h3>Hard mode alerts</h3>
  {flags_html}
  <h3>Top overdue topics</h3>
  {overdue_html}
</div>
"""


def build_message(sender: str, target_email: str, metrics: DigestMetrics) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = render_subject(metrics)
    message["From"] = sender
    message["To"] = target_email
    message.set_content(render_text(metrics))
    message.add_alternative(render_html(metrics), subtype="html")
    return message


class SmtpNotificationSender:
    """Sends digests over SMTP using the SMTP_* settings."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        user: str | None = None,
        password: str | None = None,
        secure: bool | None = None,
        sender: str | None = None,
        timeout: float = 20.0,
    ):
        self.host = host if host is not None else config.SMTP_HOST
        self.port = port if port is not None else config.SMTP_PORT
        self.user = user if user is not None else config.SMTP_USER
        self.password = password if password is not None else config.SMTP_PASS
        self.secure = secure if secure is not None else config.SMTP_SECURE
        self.sender = sender if sender is not None else config.SMTP_FROM
        self.timeout = timeout

    def send(self, target_email: str, metrics: DigestMetrics) -> None:
        if not self.host or not self.user or not self.password:
            raise RuntimeError(
                "SMTP is not configured. Set SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS"
            )
        if not self.sender:
            raise RuntimeError("SMTP_FROM or SMTP_USER is required")

        message = build_message(self.sender, target_email, metrics)

        if self.secure or self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.login(self.user, self.password)
                smtp.send_message(message)
        else:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.starttls()
                smtp.login(self.user, self.password)
                smtp.send_message(message)

        logger.info("Daily report for %s sent to %s", metrics.report_date, target_email)
