# automize/services/evaluation.py
"""
Evaluación pura de condiciones de Watchtower.

Nada aquí toca la BD ni la red: recibe una fila (dict), la definición de la
regla y, opcionalmente, la fila equivalente del snapshot anterior.
Un valor ausente o no numérico nunca lanza: simplemente no hace match.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from automize.core.enums import Condition, LogicOperator, normalize_condition

_MISSING = object()

CONDITION_TEXT = {
    Condition.EQUALS: "equals",
    Condition.NOT_EQUALS: "does not equal",
    Condition.GREATER_THAN: "is greater than",
    Condition.LESS_THAN: "is less than",
    Condition.GREATER_THAN_OR_EQUAL: "is at least",
    Condition.LESS_THAN_OR_EQUAL: "is at most",
    Condition.CHANGED: "has changed",
    Condition.CHANGED_BY_PERCENT: "changed by more than",
    Condition.CONTAINS: "contains",
    Condition.NOT_CONTAINS: "does not contain",
    Condition.IS_NULL: "is empty",
    Condition.IS_NOT_NULL: "is not empty",
}

_ORDERING = {
    Condition.GREATER_THAN,
    Condition.LESS_THAN,
    Condition.GREATER_THAN_OR_EQUAL,
    Condition.LESS_THAN_OR_EQUAL,
}


@dataclass
class EvaluationResult:
    matches: bool
    message: str = ""
    current_value: Optional[str] = None
    previous_value: Optional[str] = None


# -------------------------
# Coerción
# -------------------------
def to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        f = float(value)
    elif isinstance(value, str):
        try:
            f = float(value.strip().replace(",", ""))
        except ValueError:
            return None
    else:
        return None
    return f if math.isfinite(f) else None


def to_date(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).replace(tzinfo=None)
        except ValueError:
            return None
    return None


def format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (float, Decimal)):
        f = float(value)
        if math.isfinite(f) and f == int(f):
            return str(int(f))
        return str(f)
    return str(value)


def _same(a: Any, b: Any) -> bool:
    na, nb = to_number(a), to_number(b)
    if na is not None and nb is not None:
        return na == nb
    if isinstance(a, bool) or isinstance(b, bool):
        return format_value(a).lower() == format_value(b).strip().lower()
    return format_value(a) == format_value(b)


def _compare(condition: Condition, current: Any, threshold: Optional[str]) -> bool:
    if threshold is None:
        return False

    left: Any = to_number(current)
    right: Any = to_number(threshold)
    if left is None or right is None:
        # fechas: "2025-01-31" < "2025-02-01"
        left, right = to_date(current), to_date(threshold)
        if left is None or right is None:
            return False

    if condition == Condition.GREATER_THAN:
        return left > right
    if condition == Condition.LESS_THAN:
        return left < right
    if condition == Condition.GREATER_THAN_OR_EQUAL:
        return left >= right
    return left <= right


def evaluate_condition(
    condition: Condition,
    current: Any,
    threshold: Optional[str],
    previous: Any = _MISSING,
) -> bool:
    if condition == Condition.IS_NULL:
        return current is None or (isinstance(current, str) and current.strip() == "")
    if condition == Condition.IS_NOT_NULL:
        return not (current is None or (isinstance(current, str) and current.strip() == ""))

    # campo ausente: nunca hace match
    if current is None:
        return False

    if condition == Condition.EQUALS:
        return threshold is not None and _same(current, threshold)
    if condition == Condition.NOT_EQUALS:
        return threshold is None or not _same(current, threshold)
    if condition in _ORDERING:
        return _compare(condition, current, threshold)
    if condition == Condition.CHANGED:
        if previous is _MISSING or previous is None:
            return False
        return not _same(current, previous)
    if condition == Condition.CHANGED_BY_PERCENT:
        if previous is _MISSING:
            return False
        cur, prev, pct = to_number(current), to_number(previous), to_number(threshold)
        if cur is None or prev is None or pct is None or prev == 0:
            return False
        return abs((cur - prev) / prev) * 100 >= pct
    if condition == Condition.CONTAINS:
        return bool(threshold) and threshold in format_value(current)
    if condition == Condition.NOT_CONTAINS:
        return not threshold or threshold not in format_value(current)
    return False


# -------------------------
# Mensajes
# -------------------------
def field_label(field_name: str) -> str:
    return (field_name or "").replace("_", " ")


def _clause_text(field_name: str, condition: Condition, threshold: Optional[str], current: Any, previous: Any) -> str:
    text = f"{field_label(field_name)} {CONDITION_TEXT.get(condition, condition.value)}"
    if threshold:
        text += f" {threshold}"
    text += f" (current: {format_value(current)})"
    if previous is not _MISSING and previous is not None and "changed" in condition.value:
        text += f" (previous: {format_value(previous)})"
    return text


def _account_suffix(row: Mapping[str, Any]) -> str:
    account = row.get("account_name")
    return f" [{account}]" if account else ""


def _previous(previous_row: Optional[Mapping[str, Any]], field_name: str) -> Any:
    if previous_row is None or field_name not in previous_row:
        return _MISSING
    return previous_row.get(field_name)


def evaluate(
    row: Mapping[str, Any],
    rule: Any,
    previous_row: Optional[Mapping[str, Any]] = None,
) -> EvaluationResult:
    """
    `rule` es cualquier objeto con name, field_name, condition y threshold_value
    (modelo ORM o esquema).
    """
    try:
        condition = normalize_condition(rule.condition)
    except ValueError:
        return EvaluationResult(matches=False)

    current = row.get(rule.field_name)
    previous = _previous(previous_row, rule.field_name)
    threshold = rule.threshold_value

    if not evaluate_condition(condition, current, threshold, previous):
        return EvaluationResult(matches=False, current_value=format_value(current))

    message = (
        f"{rule.name}: "
        + _clause_text(rule.field_name, condition, threshold, current, previous)
        + _account_suffix(row)
    )
    return EvaluationResult(
        matches=True,
        message=message,
        current_value=format_value(current),
        previous_value=None if previous is _MISSING or previous is None else format_value(previous),
    )


def evaluate_compound(
    name: str,
    clauses: Sequence[Any],
    row: Mapping[str, Any],
    logic_operator: Optional[str] = None,
    previous_row: Optional[Mapping[str, Any]] = None,
) -> EvaluationResult:
    """
    AND: todas las cláusulas (y al menos una). OR: cualquiera.
    El mensaje lista las cláusulas que dispararon, unidas por el operador.
    """
    op = LogicOperator.OR if (logic_operator or "").upper() == "OR" else LogicOperator.AND

    triggered = []
    for clause in clauses:
        try:
            condition = normalize_condition(clause.condition)
        except ValueError:
            continue
        current = row.get(clause.field_name)
        previous = _previous(previous_row, clause.field_name)
        if evaluate_condition(condition, current, clause.threshold_value, previous):
            triggered.append((clause, condition, current, previous))

    if not clauses:
        return EvaluationResult(matches=False)
    if op == LogicOperator.AND and len(triggered) != len(clauses):
        return EvaluationResult(matches=False)
    if op == LogicOperator.OR and not triggered:
        return EvaluationResult(matches=False)

    parts = [
        _clause_text(c.field_name, cond, c.threshold_value, cur, prev)
        for c, cond, cur, prev in triggered
    ]
    message = f"{name}: " + f" {op.value} ".join(parts) + _account_suffix(row)
    return EvaluationResult(
        matches=True,
        message=message,
        current_value=", ".join(format_value(cur) for _, _, cur, _ in triggered),
    )
