# automize/services/rule_store.py
from __future__ import annotations

import logging
import math
import secrets
import time
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from automize.core.enums import Condition, DependencyCondition, LogicOperator, normalize_condition
from automize.core.errors import NotFoundError, ValidationFailed
from automize.core.timeutils import as_utc, utc_now
from automize.models.alert import WatchtowerAlert
from automize.models.rule import WatchtowerRule
from automize.schemas.fields import DATE, NUMBER, check_field_condition, get_field
from automize.schemas.filters import parse_row_filters
from automize.schemas.rules import RuleCreate, RuleUpdate
from automize.services.evaluation import to_date, to_number

logger = logging.getLogger("automize.watchtower.rules")

RULE_SORTS = {
    "created_desc": (WatchtowerRule.created_at.desc(), WatchtowerRule.id.desc()),
    "created_asc": (WatchtowerRule.created_at.asc(), WatchtowerRule.id.asc()),
    "name_asc": (WatchtowerRule.name.asc(), WatchtowerRule.id.asc()),
    "name_desc": (WatchtowerRule.name.desc(), WatchtowerRule.id.desc()),
    "triggers_desc": (WatchtowerRule.trigger_count.desc(), WatchtowerRule.id.desc()),
}

# condiciones que no necesitan umbral
_NO_THRESHOLD = {Condition.IS_NULL, Condition.IS_NOT_NULL, Condition.CHANGED}

# columnas NOT NULL: un PATCH no puede mandarlas en null
_REQUIRED_ON_UPDATE = (
    "name",
    "target_table",
    "field_name",
    "condition",
    "severity",
    "schedule",
    "is_active",
    "notify_discord",
    "notify_whatsapp",
)


# -------------------------
# Helpers
# -------------------------
def generate_group_id() -> str:
    return f"group_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def validate_rule_definition(
    *,
    target_table: str,
    field_name: str,
    condition: str,
    threshold_value: Optional[str],
    row_filters: Optional[Dict[str, Any]] = None,
) -> None:
    """Lanza ValidationFailed si la combinación tabla/campo/condición/umbral no tiene sentido."""
    try:
        cond = normalize_condition(condition)
    except ValueError:
        raise ValidationFailed(f"Unknown condition '{condition}'")

    err = check_field_condition(target_table, field_name, cond)
    if err:
        raise ValidationFailed(err)

    if cond not in _NO_THRESHOLD and threshold_value is None:
        raise ValidationFailed(f"Condition '{cond.value}' requires a threshold_value")

    spec = get_field(target_table, field_name)
    if threshold_value is not None and spec is not None:
        if cond == Condition.CHANGED_BY_PERCENT or (
            spec.type == NUMBER and cond not in (Condition.EQUALS, Condition.NOT_EQUALS)
        ):
            if to_number(threshold_value) is None:
                raise ValidationFailed(f"threshold_value '{threshold_value}' must be numeric")
        if spec.type == DATE and cond not in _NO_THRESHOLD and to_number(threshold_value) is None:
            if to_date(threshold_value) is None:
                raise ValidationFailed(f"threshold_value '{threshold_value}' must be an ISO date")

    parse_row_filters(target_table, row_filters)


def _base_query():
    return select(WatchtowerRule).where(WatchtowerRule.deleted_at.is_(None))


def _get_live(db: Session, rule_id: int) -> WatchtowerRule:
    r = db.get(WatchtowerRule, int(rule_id))
    if not r or r.deleted_at is not None:
        raise NotFoundError("Rule not found")
    return r


def _check_parent(db: Session, parent_rule_id: Optional[int], self_id: Optional[int] = None) -> None:
    if parent_rule_id is None:
        return
    if self_id is not None and int(parent_rule_id) == int(self_id):
        raise ValidationFailed("A rule cannot depend on itself")
    parent = db.get(WatchtowerRule, int(parent_rule_id))
    if not parent or parent.deleted_at is not None:
        raise ValidationFailed(f"Parent rule {parent_rule_id} does not exist")


def _rule_kwargs(data: RuleCreate) -> Dict[str, Any]:
    return dict(
        name=data.name,
        description=data.description,
        target_table=data.target_table.value,
        field_name=data.field_name,
        condition=data.condition,
        threshold_value=data.threshold_value,
        time_range_days=data.time_range_days,
        row_filters=data.row_filters or None,
        client_id=data.client_id,
        severity=data.severity.value,
        schedule=data.schedule.value,
        notify_time=data.notify_time,
        notify_day_of_week=data.notify_day_of_week,
        is_active=data.is_active,
        parent_rule_id=data.parent_rule_id,
        dependency_condition=(
            data.dependency_condition.value
            if data.dependency_condition
            else (DependencyCondition.TRIGGERED.value if data.parent_rule_id else None)
        ),
        notify_discord=data.notify_discord,
        discord_channel_id=data.discord_channel_id,
        extra_discord_channel_ids=list(data.extra_discord_channel_ids or []),
        notify_whatsapp=data.notify_whatsapp,
        pod_ids=list(data.pod_ids or []),
        trigger_count=0,
    )


# -------------------------
# Create
# -------------------------
def create_rule(db: Session, data: RuleCreate) -> WatchtowerRule:
    if data.clauses:
        return create_compound_rule(db, data)[0]

    validate_rule_definition(
        target_table=data.target_table.value,
        field_name=data.field_name,
        condition=data.condition,
        threshold_value=data.threshold_value,
        row_filters=data.row_filters,
    )
    _check_parent(db, data.parent_rule_id)

    r = WatchtowerRule(**_rule_kwargs(data))
    db.add(r)
    db.commit()
    db.refresh(r)
    logger.info("Rule created id=%s name=%s table=%s", r.id, r.name, r.target_table)
    return r


def create_compound_rule(db: Session, data: RuleCreate) -> List[WatchtowerRule]:
    """
    Una fila por cláusula, todas con el mismo group_id.
    La primera cláusula es la del payload principal y conserva el nombre.
    """
    clauses: List[Tuple[str, str, Optional[str]]] = [
        (data.field_name, data.condition, data.threshold_value)
    ]
    clauses += [(c.field_name, c.condition, c.threshold_value) for c in (data.clauses or [])]

    for field_name, condition, threshold in clauses:
        validate_rule_definition(
            target_table=data.target_table.value,
            field_name=field_name,
            condition=condition,
            threshold_value=threshold,
            row_filters=data.row_filters,
        )
    _check_parent(db, data.parent_rule_id)

    group_id = generate_group_id()
    operator = (data.logic_operator or LogicOperator.AND).value
    base = _rule_kwargs(data)

    created: List[WatchtowerRule] = []
    for index, (field_name, condition, threshold) in enumerate(clauses):
        kwargs = dict(base)
        kwargs.update(
            name=data.name if index == 0 else f"{data.name} - Clause {index + 1}",
            field_name=field_name,
            condition=condition,
            threshold_value=threshold,
            group_id=group_id,
            logic_operator=operator,
        )
        r = WatchtowerRule(**kwargs)
        db.add(r)
        created.append(r)

    db.commit()
    for r in created:
        db.refresh(r)
    logger.info("Compound rule created group=%s clauses=%s", group_id, len(created))
    return created


# -------------------------
# Read
# -------------------------
def get_rule(db: Session, rule_id: int) -> WatchtowerRule:
    return _get_live(db, rule_id)


def group_rules(db: Session, group_id: Optional[str]) -> List[WatchtowerRule]:
    if not group_id:
        return []
    stmt = _base_query().where(WatchtowerRule.group_id == group_id).order_by(WatchtowerRule.id.asc())
    return list(db.execute(stmt).scalars().all())


def child_rules(db: Session, rule_id: int) -> List[WatchtowerRule]:
    stmt = _base_query().where(WatchtowerRule.parent_rule_id == int(rule_id)).order_by(WatchtowerRule.id.asc())
    return list(db.execute(stmt).scalars().all())


def get_rule_with_relations(db: Session, rule_id: int) -> Dict[str, Any]:
    """
    Regla + hermanas del grupo (si es compuesta) o reglas hijas (si no).
    """
    r = _get_live(db, rule_id)
    siblings = group_rules(db, r.group_id)
    return {
        "rule": r,
        "group_rules": [s for s in siblings if s.id != r.id],
        "child_rules": child_rules(db, r.id) if not r.group_id else [],
    }


def list_rules(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 20,
    sort: str = "created_desc",
    severity: Optional[str] = None,
    is_active: Optional[bool] = None,
    target_table: Optional[str] = None,
    schedule: Optional[str] = None,
    group_id: Optional[str] = None,
    client_id: Optional[str] = None,
) -> Tuple[List[WatchtowerRule], int]:
    stmt = _base_query()
    if severity:
        stmt = stmt.where(WatchtowerRule.severity == severity)
    if is_active is not None:
        stmt = stmt.where(WatchtowerRule.is_active.is_(is_active))
    if target_table:
        stmt = stmt.where(WatchtowerRule.target_table == target_table)
    if schedule:
        stmt = stmt.where(WatchtowerRule.schedule == schedule)
    if group_id:
        stmt = stmt.where(WatchtowerRule.group_id == group_id)
    if client_id:
        stmt = stmt.where(WatchtowerRule.client_id == client_id)

    if sort not in RULE_SORTS:
        raise ValidationFailed(f"Unknown sort '{sort}'")

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    stmt = stmt.order_by(*RULE_SORTS[sort]).limit(page_size).offset((page - 1) * page_size)
    return list(db.execute(stmt).scalars().all()), int(total)


def list_deleted_rules(db: Session, *, page: int = 1, page_size: int = 20) -> Tuple[List[WatchtowerRule], int]:
    stmt = select(WatchtowerRule).where(WatchtowerRule.deleted_at.is_not(None))
    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    stmt = stmt.order_by(WatchtowerRule.deleted_at.desc(), WatchtowerRule.id.desc())
    return list(db.execute(stmt.limit(page_size).offset((page - 1) * page_size)).scalars().all()), int(total)


def active_rules(db: Session, schedule: Optional[str] = None) -> List[WatchtowerRule]:
    stmt = _base_query().where(WatchtowerRule.is_active.is_(True))
    if schedule:
        stmt = stmt.where(WatchtowerRule.schedule == schedule)
    return list(db.execute(stmt.order_by(WatchtowerRule.id.asc())).scalars().all())


def available_parent_rules(db: Session, exclude_id: Optional[int] = None) -> List[WatchtowerRule]:
    """Reglas que pueden ser padre: activas, vivas y no compuestas."""
    stmt = _base_query().where(
        WatchtowerRule.is_active.is_(True),
        WatchtowerRule.group_id.is_(None),
    )
    if exclude_id is not None:
        stmt = stmt.where(WatchtowerRule.id != int(exclude_id))
    return list(db.execute(stmt.order_by(WatchtowerRule.name.asc())).scalars().all())


# -------------------------
# Update
# -------------------------
def update_rule(db: Session, rule_id: int, payload: RuleUpdate) -> WatchtowerRule:
    r = _get_live(db, rule_id)
    data = payload.model_dump(exclude_unset=True)

    nulls = [k for k in _REQUIRED_ON_UPDATE if k in data and data[k] is None]
    if nulls:
        raise ValidationFailed(f"Fields cannot be null: {', '.join(nulls)}")

    for enum_field in ("target_table", "severity", "schedule", "dependency_condition", "logic_operator"):
        if data.get(enum_field) is not None:
            data[enum_field] = getattr(data[enum_field], "value", data[enum_field])

    merged = {
        "target_table": data.get("target_table", r.target_table),
        "field_name": data.get("field_name", r.field_name),
        "condition": data.get("condition", r.condition),
        "threshold_value": data.get("threshold_value", r.threshold_value),
        "row_filters": data.get("row_filters", r.row_filters),
    }
    validate_rule_definition(**merged)

    if "parent_rule_id" in data:
        _check_parent(db, data["parent_rule_id"], self_id=r.id)
        if data["parent_rule_id"] and not data.get("dependency_condition") and not r.dependency_condition:
            data["dependency_condition"] = DependencyCondition.TRIGGERED.value

    for k, v in data.items():
        setattr(r, k, v)
    r.updated_at = utc_now()

    db.commit()
    db.refresh(r)
    return r


def toggle_rule(db: Session, rule_id: int, is_active: bool) -> WatchtowerRule:
    r = _get_live(db, rule_id)
    r.is_active = bool(is_active)
    r.updated_at = utc_now()
    db.commit()
    db.refresh(r)
    return r


def record_trigger(db: Session, rule_id: int) -> None:
    """last_triggered_at = now, trigger_count += 1 (incremento atómico en SQL)."""
    db.execute(
        update(WatchtowerRule)
        .where(WatchtowerRule.id == int(rule_id))
        .values(
            last_triggered_at=utc_now(),
            trigger_count=WatchtowerRule.trigger_count + 1,
        )
    )
    db.commit()


def mark_rule_notified(db: Session, rule_id: int) -> None:
    db.execute(
        update(WatchtowerRule)
        .where(WatchtowerRule.id == int(rule_id))
        .values(last_notified_at=utc_now())
    )
    db.commit()


# -------------------------
# Delete / restore
# -------------------------
def _is_group_primary(db: Session, r: WatchtowerRule) -> bool:
    if not r.group_id:
        return False
    first_id = db.execute(
        select(func.min(WatchtowerRule.id)).where(WatchtowerRule.group_id == r.group_id)
    ).scalar_one()
    return first_id == r.id


def delete_rule(
    db: Session,
    rule_id: int,
    *,
    delete_group: bool = False,
    deleted_by: Optional[str] = None,
) -> List[int]:
    """
    Soft delete. Borrar la cláusula principal de una regla compuesta (o pasar
    delete_group) borra todo el grupo. Las alertas no se tocan.
    """
    r = _get_live(db, rule_id)

    targets = [r]
    if r.group_id and (delete_group or _is_group_primary(db, r)):
        targets = group_rules(db, r.group_id)

    now = utc_now()
    for t in targets:
        t.deleted_at = now
        t.deleted_by = deleted_by
        t.is_active = False

    db.commit()
    ids = [int(t.id) for t in targets]
    logger.info("Rules soft-deleted ids=%s by=%s", ids, deleted_by)
    return ids


def restore_rule(db: Session, rule_id: int, *, restore_group: bool = False) -> List[int]:
    r = db.get(WatchtowerRule, int(rule_id))
    if not r or r.deleted_at is None:
        raise NotFoundError("Deleted rule not found")

    targets = [r]
    if restore_group and r.group_id:
        targets = list(
            db.execute(
                select(WatchtowerRule).where(
                    WatchtowerRule.group_id == r.group_id,
                    WatchtowerRule.deleted_at.is_not(None),
                )
            ).scalars().all()
        )

    for t in targets:
        t.deleted_at = None
        t.deleted_by = None
        t.is_active = True
        t.updated_at = utc_now()

    db.commit()
    return [int(t.id) for t in targets]


def hard_delete_rule(
    db: Session,
    rule_id: int,
    *,
    delete_group: bool = False,
    retention_days: int = 30,
) -> List[int]:
    """Borrado físico; solo para reglas con soft delete de hace más de `retention_days`."""
    r = db.get(WatchtowerRule, int(rule_id))
    if not r:
        raise NotFoundError("Rule not found")
    if r.deleted_at is None:
        raise ValidationFailed("Rule must be soft-deleted before permanent deletion")

    eligible_at = as_utc(r.deleted_at) + timedelta(days=retention_days)
    now = utc_now()
    if now < eligible_at:
        remaining = math.ceil((eligible_at - now).total_seconds() / 86400)
        raise ValidationFailed(
            f"Cannot permanently delete yet. {remaining} day(s) remaining until eligible for permanent deletion."
        )

    targets = [r]
    if delete_group and r.group_id:
        cutoff = now - timedelta(days=retention_days)
        targets = [
            t
            for t in db.execute(
                select(WatchtowerRule).where(
                    WatchtowerRule.group_id == r.group_id,
                    WatchtowerRule.deleted_at.is_not(None),
                )
            ).scalars().all()
            if as_utc(t.deleted_at) <= cutoff
        ]

    ids = [int(t.id) for t in targets]
    for t in targets:
        db.delete(t)
    db.commit()
    logger.info("Rules permanently deleted ids=%s", ids)
    return ids


# -------------------------
# Dependencias
# -------------------------
def check_dependency(db: Session, rule: WatchtowerRule, window_hours: int = 24) -> bool:
    """
    triggered      -> el padre tiene alguna alerta en la ventana
    not_triggered  -> el padre NO tiene alertas en la ventana
    acknowledged   -> el padre tiene alguna alerta con ack en la ventana
    Sin padre siempre pasa.
    """
    if not rule.parent_rule_id:
        return True

    since = utc_now() - timedelta(hours=window_hours)
    base = select(func.count(WatchtowerAlert.id)).where(
        WatchtowerAlert.rule_id == int(rule.parent_rule_id),
        WatchtowerAlert.created_at >= since,
    )

    cond = rule.dependency_condition or DependencyCondition.TRIGGERED.value
    if cond == DependencyCondition.ACKNOWLEDGED.value:
        n = db.execute(base.where(WatchtowerAlert.is_acknowledged.is_(True))).scalar_one()
        return n > 0

    n = db.execute(base).scalar_one()
    if cond == DependencyCondition.NOT_TRIGGERED.value:
        return n == 0
    return n > 0
