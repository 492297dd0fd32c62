# automize/schemas/fields.py
"""
Catálogo cerrado de campos evaluables por tabla destino.

Cada campo trae su tipo; el tipo define qué condiciones tienen sentido
(no se permite "greater_than" sobre un string, etc.).
"""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from automize.core.enums import Condition, TargetTable

NUMBER = "number"
STRING = "string"
BOOLEAN = "boolean"
DATE = "date"


class FieldSpec(BaseModel):
    name: str
    label: str
    type: str


class TableFields(BaseModel):
    table: str
    label: str
    fields: List[FieldSpec]


_C = Condition

CONDITIONS_BY_FIELD_TYPE: Dict[str, Tuple[Condition, ...]] = {
    NUMBER: (
        _C.EQUALS, _C.NOT_EQUALS,
        _C.GREATER_THAN, _C.LESS_THAN,
        _C.GREATER_THAN_OR_EQUAL, _C.LESS_THAN_OR_EQUAL,
        _C.CHANGED, _C.CHANGED_BY_PERCENT,
        _C.IS_NULL, _C.IS_NOT_NULL,
    ),
    STRING: (
        _C.EQUALS, _C.NOT_EQUALS,
        _C.CONTAINS, _C.NOT_CONTAINS,
        _C.CHANGED,
        _C.IS_NULL, _C.IS_NOT_NULL,
    ),
    BOOLEAN: (_C.EQUALS, _C.NOT_EQUALS, _C.CHANGED, _C.IS_NULL, _C.IS_NOT_NULL),
    DATE: (
        _C.EQUALS, _C.NOT_EQUALS,
        _C.GREATER_THAN, _C.LESS_THAN,
        _C.GREATER_THAN_OR_EQUAL, _C.LESS_THAN_OR_EQUAL,
        _C.CHANGED,
        _C.IS_NULL, _C.IS_NOT_NULL,
    ),
}


def _f(name: str, label: str, type_: str) -> FieldSpec:
    return FieldSpec(name=name, label=label, type=type_)


_FACEBOOK = [
    _f("ad_spend_timeframe", "Ad Spend (Timeframe)", NUMBER),
    _f("roas_timeframe", "ROAS (Timeframe)", NUMBER),
    _f("fb_revenue_timeframe", "FB Revenue (Timeframe)", NUMBER),
    _f("shopify_revenue_timeframe", "Shopify Revenue (Timeframe)", NUMBER),
    _f("orders_timeframe", "Orders (Timeframe)", NUMBER),
    _f("cpa_purchase", "CPA Purchase", NUMBER),
    _f("cpc", "CPC", NUMBER),
    _f("cpm", "CPM", NUMBER),
    _f("ctr", "CTR", NUMBER),
    _f("hook_rate", "Hook Rate", NUMBER),
    _f("bounce_rate", "Bounce Rate", NUMBER),
    _f("is_error", "Has Error", BOOLEAN),
    _f("is_monitored", "Is Monitored", BOOLEAN),
]

_FINANCE = [
    _f("ad_spend_rebill", "Ad Spend (Rebill)", NUMBER),
    _f("roas_rebill", "ROAS (Rebill)", NUMBER),
    _f("fb_revenue_rebill", "FB Revenue (Rebill)", NUMBER),
    _f("shopify_revenue_rebill", "Shopify Revenue (Rebill)", NUMBER),
    _f("orders_rebill", "Orders (Rebill)", NUMBER),
    _f("rebill_status", "Rebill Status", STRING),
    _f("last_rebill_date", "Last Rebill Date", DATE),
    _f("is_error", "Has Error", BOOLEAN),
]

_ALL_METRICS = _FACEBOOK + [f for f in _FINANCE if f.name != "is_error"] + [
    _f("impressions", "Impressions", NUMBER),
    _f("atc_rate", "ATC Rate", NUMBER),
    _f("account_name", "Account Name", STRING),
    _f("pod", "Pod", STRING),
]

TABLE_FIELDS: List[TableFields] = [
    TableFields(table=TargetTable.FACEBOOK_METRICS.value, label="Facebook Metrics", fields=_FACEBOOK),
    TableFields(table=TargetTable.FINANCE_METRICS.value, label="Finance Metrics", fields=_FINANCE),
    TableFields(
        table=TargetTable.REFRESH_SNAPSHOT_METRICS.value,
        label="Refresh Snapshot Metrics",
        fields=_ALL_METRICS,
    ),
    TableFields(
        table=TargetTable.API_RECORDS.value,
        label="API Records",
        fields=[
            _f("status", "Status", STRING),
            _f("category", "Category", STRING),
            _f("amount", "Amount", NUMBER),
            _f("quantity", "Quantity", NUMBER),
            _f("record_date", "Record Date", DATE),
        ],
    ),
    TableFields(
        table=TargetTable.FORM_SUBMISSIONS.value,
        label="Form Submissions",
        fields=[
            _f("status", "Submission Status", STRING),
            _f("form_type", "Form Type", STRING),
            _f("created_at", "Submitted At", DATE),
            _f("processed_at", "Processed At", DATE),
        ],
    ),
    TableFields(
        table=TargetTable.API_SNAPSHOTS.value,
        label="API Snapshots",
        fields=[
            _f("status", "Snapshot Status", STRING),
            _f("total_records", "Total Records", NUMBER),
            _f("snapshot_type", "Snapshot Type", STRING),
            _f("error_message", "Error Message", STRING),
        ],
    ),
    TableFields(
        table=TargetTable.SHEET_SNAPSHOTS.value,
        label="Sheet Snapshots",
        fields=[
            _f("refresh_status", "Refresh Status", STRING),
            _f("refresh_type", "Refresh Type", STRING),
            _f("date_preset", "Date Preset", STRING),
            _f("snapshot_date", "Snapshot Date", DATE),
        ],
    ),
]

_BY_TABLE: Dict[str, TableFields] = {t.table: t for t in TABLE_FIELDS}


def get_field(target_table: str, field_name: str) -> Optional[FieldSpec]:
    t = _BY_TABLE.get(target_table)
    if not t:
        return None
    for f in t.fields:
        if f.name == field_name:
            return f
    return None


def check_field_condition(target_table: str, field_name: str, condition: Condition) -> Optional[str]:
    """
    Devuelve un mensaje de error si (campo, condición) no es válido para la tabla;
    None si todo bien.
    """
    spec = get_field(target_table, field_name)
    if spec is None:
        return f"Field '{field_name}' is not available on {target_table}"
    allowed = CONDITIONS_BY_FIELD_TYPE.get(spec.type, ())
    if condition not in allowed:
        return f"Condition '{condition.value}' is not valid for {spec.type} field '{field_name}'"
    return None
