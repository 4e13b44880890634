"""Daily report settings and scheduler trigger endpoints."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session as DbSession

from api.database import get_db
from api.dependencies import get_current_user, get_digest_scheduler, require_cron_secret
from api.models import (
    CronTickResponse,
    DailyReportLogResponse,
    DailyReportSettingResponse,
    DailyReportSettingsView,
    DailyReportSettingUpdate,
    SendNowResponse,
)
from api.models.db.daily_report import DailyReportLog
from api.models.db.user import User
from api.services import daily_report_service
from api.services.digest_scheduler import DailyDigestScheduler
from api.utils import validate_time_zone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])
cron_router = APIRouter(prefix="/api/cron", tags=["cron"])


def _log_to_response(log: DailyReportLog) -> DailyReportLogResponse:
    return DailyReportLogResponse(
        id=log.id,
        targetEmail=log.target_email,
        reportDate=log.report_date,
        status=log.status,
        errorMessage=log.error_message,
        createdAt=log.created_at,
    )


def _settings_view(db: DbSession, user: User) -> DailyReportSettingsView:
    setting = daily_report_service.get_setting(db, user.id)
    logs = daily_report_service.get_recent_logs(db, user.id)
    return DailyReportSettingsView(
        setting=DailyReportSettingResponse(
            **daily_report_service.effective_setting(user, setting)
        ),
        logs=[_log_to_response(log) for log in logs],
    )


@router.get("/daily-settings", response_model=DailyReportSettingsView)
def get_daily_settings(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> DailyReportSettingsView:
    """Digest preferences and the latest dispatch logs."""
    return _settings_view(db, current_user)


@router.patch("/daily-settings", response_model=DailyReportSettingsView)
def update_daily_settings(
    payload: DailyReportSettingUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> DailyReportSettingsView:
    time_zone = validate_time_zone(payload.timeZone) if payload.timeZone else None
    daily_report_service.upsert_setting(
        db,
        current_user.id,
        target_email=str(payload.targetEmail).strip(),
        enabled=payload.enabled,
        send_hour=payload.sendHour,
        time_zone=time_zone,
    )
    return _settings_view(db, current_user)


@router.post("/daily-settings/send-now", response_model=SendNowResponse)
def send_daily_report_now(
    current_user: Annotated[User, Depends(get_current_user)],
    scheduler: Annotated[DailyDigestScheduler, Depends(get_digest_scheduler)],
) -> SendNowResponse:
    """Send today's report immediately, regardless of send hour."""
    try:
        outcome, report_date = scheduler.send_now(current_user.id, current_user.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not outcome.ok:
        raise HTTPException(
            status_code=502,
            detail=outcome.error or "Failed to send daily report",
        )
    return SendNowResponse(
        ok=True,
        reportDate=report_date,
        metrics=outcome.metrics.to_dict() if outcome.metrics else None,
    )


@cron_router.get(
    "/daily-report",
    response_model=CronTickResponse,
    dependencies=[Depends(require_cron_secret)],
)
def run_daily_report_tick(
    scheduler: Annotated[DailyDigestScheduler, Depends(get_digest_scheduler)],
) -> CronTickResponse:
    """One scheduler tick. Meant to be called hourly by an external cron."""
    totals = scheduler.run_tick()
    return CronTickResponse(ok=True, totals=totals.to_dict())
