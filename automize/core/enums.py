# automize/core/enums.py
from enum import Enum
from typing import Dict


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Orden para "severity_desc" y filtros
SEVERITY_RANK: Dict[str, int] = {
    Severity.LOW.value: 1,
    Severity.MEDIUM.value: 2,
    Severity.HIGH.value: 3,
    Severity.CRITICAL.value: 4,
}


class Schedule(str, Enum):
    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"


class TargetTable(str, Enum):
    FACEBOOK_METRICS = "facebook_metrics"
    FINANCE_METRICS = "finance_metrics"
    REFRESH_SNAPSHOT_METRICS = "refresh_snapshot_metrics"
    API_RECORDS = "api_records"
    FORM_SUBMISSIONS = "form_submissions"
    API_SNAPSHOTS = "api_snapshots"
    SHEET_SNAPSHOTS = "sheet_snapshots"


class Condition(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    CHANGED = "changed"
    CHANGED_BY_PERCENT = "changed_by_percent"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


# Alias simbólicos aceptados en payloads
CONDITION_ALIASES: Dict[str, Condition] = {
    ">": Condition.GREATER_THAN,
    "<": Condition.LESS_THAN,
    ">=": Condition.GREATER_THAN_OR_EQUAL,
    "<=": Condition.LESS_THAN_OR_EQUAL,
    "==": Condition.EQUALS,
    "=": Condition.EQUALS,
    "!=": Condition.NOT_EQUALS,
}


class LogicOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class DependencyCondition(str, Enum):
    TRIGGERED = "triggered"
    NOT_TRIGGERED = "not_triggered"
    ACKNOWLEDGED = "acknowledged"


class RefreshType(str, Enum):
    AUTOMETRIC = "autometric"
    FINANCIALX = "financialx"


class RefreshStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UPSTREAM = "upstream"


def normalize_condition(value: str) -> Condition:
    """
    Acepta el nombre largo ("greater_than") o el símbolo (">").
    Lanza ValueError si no se reconoce.
    """
    v = (value or "").strip()
    if v in CONDITION_ALIASES:
        return CONDITION_ALIASES[v]
    return Condition(v.lower())
