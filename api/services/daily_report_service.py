"""Service layer for daily report settings and logs."""
from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession

from api.config import DAILY_REPORT_LOG_LIMIT, DEFAULT_SEND_HOUR, DEFAULT_TIMEZONE
from api.models.db.daily_report import DailyReportLog, DailyReportSetting
from api.models.db.user import User


def get_setting(db: DBSession, user_id: int) -> DailyReportSetting | None:
    """Get the user's setting row, if any."""
    return db.execute(
        select(DailyReportSetting).where(DailyReportSetting.user_id == user_id)
    ).scalar_one_or_none()


def get_recent_logs(
    db: DBSession, user_id: int, limit: int = DAILY_REPORT_LOG_LIMIT
) -> list[DailyReportLog]:
    """Most recent dispatch logs of a user."""
    return list(
        db.execute(
            select(DailyReportLog)
            .where(DailyReportLog.user_id == user_id)
            .order_by(DailyReportLog.created_at.desc(), DailyReportLog.id.desc())
            .limit(limit)
        ).scalars().all()
    )


def effective_setting(user: User, setting: DailyReportSetting | None) -> dict[str, object]:
    """Setting as shown to the user, with defaults for missing values."""
    return {
        "targetEmail": (setting.target_email if setting else "") or user.email,
        "enabled": setting.enabled if setting else False,
        "sendHour": setting.send_hour if setting else DEFAULT_SEND_HOUR,
        "timeZone": setting.time_zone if setting else DEFAULT_TIMEZONE,
        "lastSentDate": setting.last_sent_date if setting else None,
    }


def upsert_setting(
    db: DBSession,
    user_id: int,
    target_email: str,
    enabled: bool,
    send_hour: int | None = None,
    time_zone: str | None = None,
) -> DailyReportSetting:
    """Create or update the user's setting. last_sent_date is left untouched."""
    setting = get_setting(db, user_id)
    if setting is None:
        setting = DailyReportSetting(user_id=user_id)
        db.add(setting)

    setting.target_email = target_email
    setting.enabled = enabled
    setting.send_hour = send_hour if send_hour is not None else (
        setting.send_hour if setting.send_hour is not None else DEFAULT_SEND_HOUR
    )
    setting.time_zone = time_zone or setting.time_zone or DEFAULT_TIMEZONE

    db.commit()
    db.refresh(setting)
    return setting
