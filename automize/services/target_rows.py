# automize/services/target_rows.py
"""
Carga de filas a evaluar por tabla destino.

- Tablas de métricas: filas del último refresh completado (o de todos los
  refresh completados dentro del rango de tiempo, máx. 100 snapshots).
- api_records: igual, contra api_snapshots completados.
- Resto: últimas 500 filas dentro del rango.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from automize.core.enums import RefreshStatus, RefreshType, TargetTable
from automize.core.errors import ValidationFailed
from automize.core.timeutils import time_range_start
from automize.models.api_record import ApiRecord
from automize.models.api_snapshot import ApiSnapshot
from automize.models.form_submission import FormSubmission
from automize.models.sheet_snapshot import SheetRefreshSnapshot
from automize.models.snapshot_metric import RefreshSnapshotMetric
from automize.schemas.filters import filter_conditions

MAX_SNAPSHOTS_IN_RANGE = 100
MAX_ROWS = 500

_METRIC_TABLES = {
    TargetTable.FACEBOOK_METRICS.value: RefreshType.AUTOMETRIC.value,
    TargetTable.FINANCE_METRICS.value: RefreshType.FINANCIALX.value,
    # cualquier tipo de refresh
    TargetTable.REFRESH_SNAPSHOT_METRICS.value: None,
}

_PLAIN_TABLES = {
    TargetTable.FORM_SUBMISSIONS.value: FormSubmission,
    TargetTable.API_SNAPSHOTS.value: ApiSnapshot,
    TargetTable.SHEET_SNAPSHOTS.value: SheetRefreshSnapshot,
}


@dataclass
class TargetRow:
    data: Dict[str, Any]
    key: str
    snapshot_id: Optional[int] = None
    previous: Optional[Dict[str, Any]] = None


@dataclass
class TargetRows:
    target_table: str
    rows: List[TargetRow] = field(default_factory=list)
    snapshot_ids: List[int] = field(default_factory=list)


def row_to_dict(obj: Any) -> Dict[str, Any]:
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}


def natural_key(target_table: str, data: Dict[str, Any]) -> str:
    """Entidad "estable" de la fila, usada para dedup y para el valor anterior."""
    if target_table in _METRIC_TABLES:
        account = (data.get("account_name") or "").strip()
        if account:
            return account
    elif target_table == TargetTable.API_RECORDS.value:
        ext = (data.get("external_id") or "").strip()
        if ext:
            return ext
    return f"id:{data.get('id')}"


def _apply_filters(stmt, model, conditions: Dict[str, Any]):
    for name, value in conditions.items():
        col = getattr(model, name, None)
        if col is None:
            raise ValidationFailed(f"Unknown filter field '{name}'")
        stmt = stmt.where(col == value)
    return stmt


def _build_rows(
    target_table: str,
    items: List[Any],
    previous_items: Optional[List[Any]] = None,
) -> List[TargetRow]:
    previous_by_key: Dict[str, Dict[str, Any]] = {}
    for p in previous_items or []:
        pdata = row_to_dict(p)
        previous_by_key.setdefault(natural_key(target_table, pdata), pdata)

    out: List[TargetRow] = []
    for it in items:
        data = row_to_dict(it)
        key = natural_key(target_table, data)
        out.append(
            TargetRow(
                data=data,
                key=key,
                snapshot_id=data.get("snapshot_id"),
                previous=previous_by_key.get(key),
            )
        )
    return out


def _snapshot_rows(
    db: Session,
    target_table: str,
    snapshot_stmt,
    snapshot_model,
    row_model,
    since: Optional[datetime],
    conditions: Dict[str, Any],
) -> TargetRows:
    snapshot_stmt = snapshot_stmt.order_by(snapshot_model.created_at.desc(), snapshot_model.id.desc())
    if since is not None:
        snapshot_stmt = snapshot_stmt.where(snapshot_model.created_at >= since).limit(MAX_SNAPSHOTS_IN_RANGE)
    else:
        # último + el anterior (para condiciones "changed")
        snapshot_stmt = snapshot_stmt.limit(2)

    snapshot_ids = [int(s) for s in db.execute(snapshot_stmt.with_only_columns(snapshot_model.id)).scalars().all()]
    if not snapshot_ids:
        return TargetRows(target_table=target_table)

    current_ids = snapshot_ids if since is not None else snapshot_ids[:1]
    previous_ids = snapshot_ids[1:2] if since is None else []

    def _rows_for(ids: List[int]) -> List[Any]:
        # snapshot más reciente primero: el job se queda con la primera fila por entidad
        stmt = (
            select(row_model)
            .join(snapshot_model, row_model.snapshot_id == snapshot_model.id)
            .where(row_model.snapshot_id.in_(ids))
            .order_by(snapshot_model.created_at.desc(), snapshot_model.id.desc(), row_model.id)
        )
        stmt = _apply_filters(stmt, row_model, conditions)
        return list(db.execute(stmt).scalars().all())

    items = _rows_for(current_ids)
    previous_items = _rows_for(previous_ids) if previous_ids else None
    return TargetRows(
        target_table=target_table,
        rows=_build_rows(target_table, items, previous_items),
        snapshot_ids=current_ids,
    )


def fetch_target_rows(
    db: Session,
    target_table: str,
    time_range_days: Optional[int] = None,
    row_filters: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> TargetRows:
    since = time_range_start(time_range_days, now=now)
    conditions = filter_conditions(target_table, row_filters)

    if target_table in _METRIC_TABLES:
        stmt = select(SheetRefreshSnapshot).where(
            SheetRefreshSnapshot.refresh_status == RefreshStatus.COMPLETED.value
        )
        refresh_type = _METRIC_TABLES[target_table]
        if refresh_type:
            stmt = stmt.where(SheetRefreshSnapshot.refresh_type == refresh_type)
        return _snapshot_rows(
            db, target_table, stmt, SheetRefreshSnapshot, RefreshSnapshotMetric, since, conditions
        )

    if target_table == TargetTable.API_RECORDS.value:
        stmt = select(ApiSnapshot).where(ApiSnapshot.status == RefreshStatus.COMPLETED.value)
        return _snapshot_rows(db, target_table, stmt, ApiSnapshot, ApiRecord, since, conditions)

    model = _PLAIN_TABLES.get(target_table)
    if model is None:
        raise ValidationFailed(f"Unknown target table '{target_table}'")

    stmt = select(model)
    if since is not None:
        stmt = stmt.where(model.created_at >= since)
    stmt = _apply_filters(stmt, model, conditions)
    stmt = stmt.order_by(model.created_at.desc(), model.id.desc()).limit(MAX_ROWS)

    items = list(db.execute(stmt).scalars().all())
    return TargetRows(target_table=target_table, rows=_build_rows(target_table, items))
