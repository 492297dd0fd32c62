from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from automize.core.enums import Severity


class AlertOut(BaseModel):
    id: int
    rule_id: Optional[int] = None
    rule_name: Optional[str] = None
    target_table: Optional[str] = None
    snapshot_id: Optional[int] = None
    record_key: Optional[str] = None
    client_id: Optional[str] = None

    message: str
    severity: str
    current_value: Optional[str] = None
    previous_value: Optional[str] = None

    is_acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    notified_at: Optional[datetime] = None

    created_at: datetime

    class Config:
        from_attributes = True


class AlertCreate(BaseModel):
    """Alerta manual (p. ej. desde otra integración)."""

    rule_id: Optional[int] = None
    message: str = Field(..., min_length=1)
    severity: Severity = Severity.MEDIUM
    current_value: Optional[str] = None
    previous_value: Optional[str] = None
    target_table: Optional[str] = None
    record_key: Optional[str] = None
    client_id: Optional[str] = None


class AcknowledgeRequest(BaseModel):
    alert_ids: List[int] = Field(..., min_length=1)


class AcknowledgeResult(BaseModel):
    updated: int


class StatsOut(BaseModel):
    totalRules: int
    activeRules: int
    inactiveRules: int
    totalAlerts: int
    unacknowledgedAlerts: int
    alertsBySeverity: Dict[str, int]
    alertsToday: int
    alertsThisWeek: int


class CronResult(BaseModel):
    processed: int
    sent: int
    timestamp: datetime


class EvaluateResult(BaseModel):
    rules_evaluated: int
    rules_failed: int
    alerts_created: int
    alerts_skipped: int
    notifications_sent: int
    timestamp: datetime
