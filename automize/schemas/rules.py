from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from automize.core.enums import (
    DependencyCondition,
    LogicOperator,
    Schedule,
    Severity,
    TargetTable,
    normalize_condition,
)


def _condition(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    try:
        return normalize_condition(v).value
    except ValueError:
        raise ValueError(f"Unknown condition '{v}'")


def _threshold(v: Union[str, int, float, bool, None]) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, bool):
        return "true" if v else "false"
    s = str(v).strip()
    return s or None


class ClauseIn(BaseModel):
    """Una cláusula de una regla compuesta."""

    field_name: str = Field(..., max_length=128)
    condition: str
    threshold_value: Optional[Union[str, int, float, bool]] = None

    @field_validator("condition")
    @classmethod
    def check_condition(cls, v):
        return _condition(v)

    @field_validator("threshold_value", mode="before")
    @classmethod
    def check_threshold(cls, v):
        return _threshold(v)


class RuleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None

    target_table: TargetTable
    field_name: str = Field(..., max_length=128)
    condition: str
    threshold_value: Optional[Union[str, int, float, bool]] = None
    time_range_days: Optional[int] = Field(default=None, ge=0, le=3650)
    row_filters: Optional[dict] = None
    client_id: Optional[str] = None

    severity: Severity = Severity.MEDIUM
    schedule: Schedule = Schedule.IMMEDIATE
    notify_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    notify_day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    is_active: bool = True

    parent_rule_id: Optional[int] = None
    dependency_condition: Optional[DependencyCondition] = None

    notify_discord: bool = True
    discord_channel_id: Optional[str] = None
    extra_discord_channel_ids: List[str] = Field(default_factory=list)
    notify_whatsapp: bool = False
    pod_ids: List[int] = Field(default_factory=list)

    @field_validator("condition")
    @classmethod
    def check_condition(cls, v):
        return _condition(v)

    @field_validator("threshold_value", mode="before")
    @classmethod
    def check_threshold(cls, v):
        return _threshold(v)


class RuleCreate(RuleBase):
    # Si vienen cláusulas adicionales, se crea una regla compuesta
    clauses: Optional[List[ClauseIn]] = None
    logic_operator: Optional[LogicOperator] = None


class RuleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None

    target_table: Optional[TargetTable] = None
    field_name: Optional[str] = Field(default=None, max_length=128)
    condition: Optional[str] = None
    threshold_value: Optional[Union[str, int, float, bool]] = None
    time_range_days: Optional[int] = Field(default=None, ge=0, le=3650)
    row_filters: Optional[dict] = None
    client_id: Optional[str] = None

    severity: Optional[Severity] = None
    schedule: Optional[Schedule] = None
    notify_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    notify_day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    is_active: Optional[bool] = None

    parent_rule_id: Optional[int] = None
    dependency_condition: Optional[DependencyCondition] = None
    logic_operator: Optional[LogicOperator] = None

    notify_discord: Optional[bool] = None
    discord_channel_id: Optional[str] = None
    extra_discord_channel_ids: Optional[List[str]] = None
    notify_whatsapp: Optional[bool] = None
    pod_ids: Optional[List[int]] = None

    @field_validator("condition")
    @classmethod
    def check_condition(cls, v):
        return _condition(v)

    @field_validator("threshold_value", mode="before")
    @classmethod
    def check_threshold(cls, v):
        return _threshold(v)


class ToggleRequest(BaseModel):
    is_active: bool


class RuleOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    target_table: str
    field_name: str
    condition: str
    threshold_value: Optional[str] = None
    time_range_days: Optional[int] = None
    row_filters: Optional[dict] = None
    client_id: Optional[str] = None

    severity: str
    schedule: str
    notify_time: Optional[str] = None
    notify_day_of_week: Optional[int] = None
    is_active: bool

    parent_rule_id: Optional[int] = None
    dependency_condition: Optional[str] = None
    group_id: Optional[str] = None
    logic_operator: Optional[str] = None

    notify_discord: bool
    discord_channel_id: Optional[str] = None
    extra_discord_channel_ids: Optional[List[str]] = None
    notify_whatsapp: bool
    pod_ids: Optional[List[int]] = None

    last_triggered_at: Optional[datetime] = None
    trigger_count: int = 0
    last_notified_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RuleDetail(RuleOut):
    group_rules: List[RuleOut] = Field(default_factory=list)
    child_rules: List[RuleOut] = Field(default_factory=list)


class DeleteResult(BaseModel):
    deleted_ids: List[int]


class RestoreResult(BaseModel):
    restored_ids: List[int]
