# automize/routers/cron.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from automize.core.context import WatchtowerContext
from automize.core.enums import Schedule
from automize.core.security import verify_cron_secret
from automize.deps import get_context
from automize.models.user import User
from automize.routers.auth import get_current_user
from automize.schemas.alerts import CronResult, EvaluateResult
from automize.schemas.common import Ok
from automize.services.evaluation_job import process_scheduled_notifications, run_evaluation

router = APIRouter(prefix="/api/watchtower", tags=["watchtower-cron"])


def _run_cron(ctx: WatchtowerContext, schedule: Optional[str], key: Optional[str], header_key: Optional[str]):
    if not verify_cron_secret(key or header_key, ctx.settings):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron key")

    if schedule not in (Schedule.DAILY.value, Schedule.WEEKLY.value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="schedule must be 'daily' or 'weekly'",
        )

    result = process_scheduled_notifications(ctx, schedule)
    return Ok(data=CronResult(processed=result.processed, sent=result.sent, timestamp=result.timestamp))


@router.get("/cron", response_model=Ok[CronResult])
def cron_get(
    schedule: Optional[str] = Query(None),
    key: Optional[str] = Query(None),
    x_cron_key: Optional[str] = Header(None),
    ctx: WatchtowerContext = Depends(get_context),
):
    return _run_cron(ctx, schedule, key, x_cron_key)


@router.post("/cron", response_model=Ok[CronResult])
def cron_post(
    schedule: Optional[str] = Query(None),
    key: Optional[str] = Query(None),
    x_cron_key: Optional[str] = Header(None),
    ctx: WatchtowerContext = Depends(get_context),
):
    return _run_cron(ctx, schedule, key, x_cron_key)


@router.get("/evaluate", response_model=Ok[EvaluateResult])
def evaluate_all(
    ctx: WatchtowerContext = Depends(get_context),
    _: User = Depends(get_current_user),
):
    """Evalúa todas las reglas activas y envía lo pendiente de las 'immediate'."""
    s = run_evaluation(ctx)
    return Ok(
        data=EvaluateResult(
            rules_evaluated=s.rules_evaluated,
            rules_failed=s.rules_failed,
            alerts_created=s.alerts_created,
            alerts_skipped=s.alerts_skipped,
            notifications_sent=s.notifications_sent,
            timestamp=s.timestamp,
        )
    )
