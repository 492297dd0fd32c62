# automize/services/alert_store.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from automize.core.enums import SEVERITY_RANK, Severity
from automize.core.errors import NotFoundError, ValidationFailed
from automize.core.timeutils import start_of_day, utc_now
from automize.models.alert import WatchtowerAlert
from automize.models.rule import WatchtowerRule

logger = logging.getLogger("automize.watchtower.alerts")

_SEVERITY_ORDER = case(
    *[(WatchtowerAlert.severity == sev, rank) for sev, rank in SEVERITY_RANK.items()],
    else_=0,
)

ALERT_SORTS = {
    "created_desc": (WatchtowerAlert.created_at.desc(), WatchtowerAlert.id.desc()),
    "created_asc": (WatchtowerAlert.created_at.asc(), WatchtowerAlert.id.asc()),
    "severity_desc": (_SEVERITY_ORDER.desc(), WatchtowerAlert.created_at.desc(), WatchtowerAlert.id.desc()),
}


# -------------------------
# Create
# -------------------------
def has_open_alert(db: Session, rule_id: Optional[int], dedup_key: Optional[str]) -> bool:
    if rule_id is None or not dedup_key:
        return False
    n = db.execute(
        select(func.count(WatchtowerAlert.id)).where(
            WatchtowerAlert.rule_id == int(rule_id),
            WatchtowerAlert.dedup_key == dedup_key,
            WatchtowerAlert.is_acknowledged.is_(False),
        )
    ).scalar_one()
    return n > 0


def create_alert(
    db: Session,
    *,
    message: str,
    severity: str = Severity.MEDIUM.value,
    rule: Optional[WatchtowerRule] = None,
    rule_id: Optional[int] = None,
    rule_name: Optional[str] = None,
    target_table: Optional[str] = None,
    snapshot_id: Optional[int] = None,
    record_key: Optional[str] = None,
    client_id: Optional[str] = None,
    current_value: Optional[str] = None,
    previous_value: Optional[str] = None,
    dedup_key: Optional[str] = None,
) -> Optional[WatchtowerAlert]:
    """
    Crea una alerta. Devuelve None si ya hay una abierta (sin ack) con la
    misma (regla, dedup_key): el índice único parcial cubre el caso de dos
    corridas de cron simultáneas.
    """
    if rule is not None:
        rule_id = rule.id
        rule_name = rule_name or rule.name
        target_table = target_table or rule.target_table
        client_id = client_id or rule.client_id

    if has_open_alert(db, rule_id, dedup_key):
        return None

    a = WatchtowerAlert(
        rule_id=rule_id,
        rule_name=rule_name,
        target_table=target_table,
        snapshot_id=snapshot_id,
        record_key=str(record_key)[:255] if record_key else None,
        client_id=client_id,
        message=message,
        severity=severity,
        current_value=current_value,
        previous_value=previous_value,
        dedup_key=dedup_key,
        is_acknowledged=False,
    )
    db.add(a)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Duplicate open alert skipped rule_id=%s key=%s", rule_id, dedup_key)
        return None
    db.refresh(a)
    return a


# -------------------------
# Read
# -------------------------
def get_alert(db: Session, alert_id: int) -> WatchtowerAlert:
    a = db.get(WatchtowerAlert, int(alert_id))
    if not a:
        raise NotFoundError("Alert not found")
    return a


def list_alerts(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 20,
    sort: str = "created_desc",
    rule_id: Optional[int] = None,
    severity: Optional[str] = None,
    is_acknowledged: Optional[bool] = None,
    target_table: Optional[str] = None,
    client_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Tuple[List[WatchtowerAlert], int]:
    stmt = select(WatchtowerAlert)
    if rule_id is not None:
        stmt = stmt.where(WatchtowerAlert.rule_id == int(rule_id))
    if severity:
        stmt = stmt.where(WatchtowerAlert.severity == severity)
    if is_acknowledged is not None:
        stmt = stmt.where(WatchtowerAlert.is_acknowledged.is_(is_acknowledged))
    if target_table:
        stmt = stmt.where(WatchtowerAlert.target_table == target_table)
    if client_id:
        stmt = stmt.where(WatchtowerAlert.client_id == client_id)
    if start_date is not None:
        stmt = stmt.where(WatchtowerAlert.created_at >= start_date)
    if end_date is not None:
        stmt = stmt.where(WatchtowerAlert.created_at <= end_date)

    if sort not in ALERT_SORTS:
        raise ValidationFailed(f"Unknown sort '{sort}'")

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    stmt = stmt.order_by(*ALERT_SORTS[sort]).limit(page_size).offset((page - 1) * page_size)
    return list(db.execute(stmt).scalars().all()), int(total)


def pending_notifications(db: Session, rule_id: int) -> List[WatchtowerAlert]:
    """Alertas sin ack que todavía no se notificaron."""
    stmt = (
        select(WatchtowerAlert)
        .where(
            WatchtowerAlert.rule_id == int(rule_id),
            WatchtowerAlert.is_acknowledged.is_(False),
            WatchtowerAlert.notified_at.is_(None),
        )
        .order_by(WatchtowerAlert.created_at.asc(), WatchtowerAlert.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


# -------------------------
# Update / delete
# -------------------------
def acknowledge_alert(db: Session, alert_id: int, acknowledged_by: Optional[str] = None) -> WatchtowerAlert:
    """Idempotente: una segunda llamada no cambia nada ni falla."""
    a = get_alert(db, alert_id)
    if a.is_acknowledged:
        return a
    a.is_acknowledged = True
    a.acknowledged_at = utc_now()
    a.acknowledged_by = acknowledged_by
    db.commit()
    db.refresh(a)
    return a


def bulk_acknowledge(db: Session, alert_ids: Iterable[int], acknowledged_by: Optional[str] = None) -> int:
    ids = sorted({int(i) for i in alert_ids})
    if not ids:
        return 0
    res = db.execute(
        update(WatchtowerAlert)
        .where(
            WatchtowerAlert.id.in_(ids),
            WatchtowerAlert.is_acknowledged.is_(False),
        )
        .values(
            is_acknowledged=True,
            acknowledged_at=utc_now(),
            acknowledged_by=acknowledged_by,
        )
    )
    db.commit()
    return int(res.rowcount or 0)


def mark_alert_notified(db: Session, alert: WatchtowerAlert) -> None:
    alert.notified_at = utc_now()
    db.commit()


def delete_alert(db: Session, alert_id: int) -> None:
    a = get_alert(db, alert_id)
    db.delete(a)
    db.commit()


# -------------------------
# Stats
# -------------------------
def watchtower_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, object]:
    """
    Las reglas compuestas (mismo group_id) cuentan como una sola regla.
    """
    now = now or utc_now()

    rule_rows = db.execute(
        select(WatchtowerRule.id, WatchtowerRule.is_active, WatchtowerRule.group_id).where(
            WatchtowerRule.deleted_at.is_(None)
        )
    ).all()

    logical: Dict[str, bool] = {}
    for rid, active, group_id in rule_rows:
        key = group_id if group_id else f"rule:{rid}"
        logical[key] = logical.get(key, False) or bool(active)

    total_rules = len(logical)
    active_rules = sum(1 for v in logical.values() if v)

    total_alerts = db.execute(select(func.count(WatchtowerAlert.id))).scalar_one()
    unack = db.execute(
        select(func.count(WatchtowerAlert.id)).where(WatchtowerAlert.is_acknowledged.is_(False))
    ).scalar_one()

    by_sev = {s.value: 0 for s in Severity}
    for sev, n in db.execute(
        select(WatchtowerAlert.severity, func.count(WatchtowerAlert.id)).group_by(WatchtowerAlert.severity)
    ).all():
        by_sev[str(sev)] = int(n)

    today = db.execute(
        select(func.count(WatchtowerAlert.id)).where(WatchtowerAlert.created_at >= start_of_day(now))
    ).scalar_one()
    week = db.execute(
        select(func.count(WatchtowerAlert.id)).where(WatchtowerAlert.created_at >= now - timedelta(days=7))
    ).scalar_one()

    return {
        "totalRules": total_rules,
        "activeRules": active_rules,
        "inactiveRules": total_rules - active_rules,
        "totalAlerts": int(total_alerts),
        "unacknowledgedAlerts": int(unack),
        "alertsBySeverity": by_sev,
        "alertsToday": int(today),
        "alertsThisWeek": int(week),
    }
