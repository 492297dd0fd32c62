# automize/routers/alerts.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from automize.core.enums import Severity
from automize.db import get_db
from automize.models.rule import WatchtowerRule
from automize.models.user import User
from automize.routers.auth import get_current_user
from automize.schemas.alerts import AcknowledgeRequest, AcknowledgeResult, AlertCreate, AlertOut
from automize.schemas.common import Ok, Page, total_pages
from automize.services import alert_store

router = APIRouter(prefix="/api/watchtower/alerts", tags=["watchtower-alerts"])


@router.get("", response_model=Ok[Page[AlertOut]])
def list_alerts(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    sort: str = Query("created_desc"),
    rule_id: Optional[int] = None,
    severity: Optional[Severity] = None,
    is_acknowledged: Optional[bool] = None,
    target_table: Optional[str] = None,
    client_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    items, total = alert_store.list_alerts(
        db,
        page=page,
        page_size=page_size,
        sort=sort,
        rule_id=rule_id,
        severity=severity.value if severity else None,
        is_acknowledged=is_acknowledged,
        target_table=target_table,
        client_id=client_id,
        start_date=start_date,
        end_date=end_date,
    )
    return Ok(
        data=Page[AlertOut](
            items=[AlertOut.model_validate(a) for a in items],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages(total, page_size),
        )
    )


@router.post("", response_model=Ok[AlertOut], status_code=status.HTTP_201_CREATED)
def create_alert(
    payload: AlertCreate,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    rule = db.get(WatchtowerRule, payload.rule_id) if payload.rule_id is not None else None
    a = alert_store.create_alert(
        db,
        rule=rule,
        rule_id=payload.rule_id,
        message=payload.message,
        severity=payload.severity.value,
        target_table=payload.target_table,
        record_key=payload.record_key,
        client_id=payload.client_id,
        current_value=payload.current_value,
        previous_value=payload.previous_value,
    )
    return Ok(data=AlertOut.model_validate(a))


@router.patch("/acknowledge", response_model=Ok[AcknowledgeResult])
def acknowledge_alerts(
    payload: AcknowledgeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if len(payload.alert_ids) == 1:
        a = alert_store.get_alert(db, payload.alert_ids[0])
        was_open = not a.is_acknowledged
        alert_store.acknowledge_alert(db, a.id, acknowledged_by=current_user.email)
        return Ok(data=AcknowledgeResult(updated=1 if was_open else 0))

    n = alert_store.bulk_acknowledge(db, payload.alert_ids, acknowledged_by=current_user.email)
    return Ok(data=AcknowledgeResult(updated=n))


@router.get("/{alert_id}", response_model=Ok[AlertOut])
def get_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return Ok(data=AlertOut.model_validate(alert_store.get_alert(db, alert_id)))


@router.delete("/{alert_id}", response_model=Ok[AlertOut])
def delete_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    a = alert_store.get_alert(db, alert_id)
    out = AlertOut.model_validate(a)
    alert_store.delete_alert(db, alert_id)
    return Ok(data=out)
