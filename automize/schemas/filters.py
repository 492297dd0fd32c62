# automize/schemas/filters.py
"""
Filtros de filas por tabla destino.

Es una unión etiquetada por `target_table`: cada variante solo acepta los
campos que existen en su tabla, así un filtro con un campo desconocido se
rechaza al crear la regla y no al evaluarla.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from automize.core.errors import ValidationFailed


class _RowFilterBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def conditions(self) -> Dict[str, Any]:
        """Pares campo=valor a aplicar (sin la etiqueta)."""
        data = self.model_dump(exclude_none=True)
        data.pop("target_table", None)
        return data


class MetricsRowFilter(_RowFilterBase):
    target_table: Literal["facebook_metrics", "finance_metrics", "refresh_snapshot_metrics"]
    account_name: Optional[str] = None
    pod: Optional[str] = None
    is_monitored: Optional[bool] = None
    is_error: Optional[bool] = None
    rebill_status: Optional[str] = None


class ApiRecordsRowFilter(_RowFilterBase):
    target_table: Literal["api_records"]
    external_id: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None


class FormSubmissionsRowFilter(_RowFilterBase):
    target_table: Literal["form_submissions"]
    form_type: Optional[str] = None
    status: Optional[str] = None
    account_name: Optional[str] = None


class ApiSnapshotsRowFilter(_RowFilterBase):
    target_table: Literal["api_snapshots"]
    source_name: Optional[str] = None
    status: Optional[str] = None
    snapshot_type: Optional[str] = None


class SheetSnapshotsRowFilter(_RowFilterBase):
    target_table: Literal["sheet_snapshots"]
    sheet_id: Optional[str] = None
    refresh_type: Optional[str] = None
    refresh_status: Optional[str] = None
    date_preset: Optional[str] = None


RowFilters = Annotated[
    Union[
        MetricsRowFilter,
        ApiRecordsRowFilter,
        FormSubmissionsRowFilter,
        ApiSnapshotsRowFilter,
        SheetSnapshotsRowFilter,
    ],
    Field(discriminator="target_table"),
]

_adapter: TypeAdapter = TypeAdapter(RowFilters)


def parse_row_filters(target_table: str, raw: Optional[Dict[str, Any]]):
    """
    Valida un dict de filtros contra la variante de `target_table`.
    Acepta el dict con o sin la etiqueta; si la trae debe coincidir.
    """
    if not raw:
        return None
    data = dict(raw)
    tag = data.setdefault("target_table", target_table)
    if tag != target_table:
        raise ValidationFailed(
            f"row_filters target_table '{tag}' does not match rule target_table '{target_table}'"
        )
    try:
        return _adapter.validate_python(data)
    except ValidationError as e:
        errs = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'row_filters'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationFailed(f"Invalid row_filters for {target_table}: {errs}") from e


def filter_conditions(target_table: str, raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    parsed = parse_row_filters(target_table, raw)
    return parsed.conditions() if parsed is not None else {}
