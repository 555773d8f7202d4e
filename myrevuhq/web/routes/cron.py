"""Cron endpoints, called by the scheduler platform with CRON_SECRET."""

import logging
import secrets

from fastapi import APIRouter, Depends, Request

from myrevuhq.application.errors import AuthError
from myrevuhq.infrastructure.config import Settings
from myrevuhq.infrastructure.persistence import Database

from ..deps import get_app_settings, get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


def _has_cron_secret(request: Request, settings: Settings) -> bool:
    secret = settings.app.cron_secret
    if not secret:
        return False
    header = request.headers.get("authorization", "")
    return secrets.compare_digest(header.encode(), f"Bearer {secret}".encode())


@router.post("/send-scheduled-sms")
def send_scheduled_sms(request: Request, settings: Settings = Depends(get_app_settings)):
    if not _has_cron_secret(request, settings):
        raise AuthError()
    report = request.app.state.dispatcher.run_once()
    return report.to_dict()


@router.post("/reset-monthly-sms")
def reset_monthly_sms(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    db: Database = Depends(get_db),
):
    """Runs on the 1st of each month."""
    from_platform = request.headers.get("x-vercel-cron") == "1"
    if not (from_platform or _has_cron_secret(request, settings)):
        raise AuthError()

    count = db.reset_monthly_sms_counts()
    logger.info(f"[Cron] Monthly SMS counters reset for {count} users")
    return {"success": True, "message": "Monthly SMS counts reset successfully", "usersReset": count}
