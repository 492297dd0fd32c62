# automize/routers/rules.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from automize.config import Settings
from automize.core.enums import Schedule, Severity, TargetTable
from automize.db import get_db
from automize.deps import get_settings
from automize.models.user import User
from automize.routers.auth import get_current_user, require_admin
from automize.schemas.common import Ok, Page, total_pages
from automize.schemas.rules import (
    DeleteResult,
    RestoreResult,
    RuleCreate,
    RuleDetail,
    RuleOut,
    RuleUpdate,
    ToggleRequest,
)
from automize.services import rule_store

router = APIRouter(prefix="/api/watchtower/rules", tags=["watchtower-rules"])


def _detail(db: Session, rule_id: int) -> RuleDetail:
    rel = rule_store.get_rule_with_relations(db, rule_id)
    out = RuleDetail.model_validate(rel["rule"])
    out.group_rules = [RuleOut.model_validate(r) for r in rel["group_rules"]]
    out.child_rules = [RuleOut.model_validate(r) for r in rel["child_rules"]]
    return out


def _page(items, total: int, page: int, page_size: int) -> Page[RuleOut]:
    return Page[RuleOut](
        items=[RuleOut.model_validate(r) for r in items],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


# -------------------------
# Read
# -------------------------
@router.get("", response_model=Ok[Page[RuleOut]])
def list_rules(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort: str = Query("created_desc"),
    severity: Optional[Severity] = None,
    is_active: Optional[bool] = None,
    target_table: Optional[TargetTable] = None,
    schedule: Optional[Schedule] = None,
    group_id: Optional[str] = None,
    client_id: Optional[str] = None,
):
    items, total = rule_store.list_rules(
        db,
        page=page,
        page_size=page_size,
        sort=sort,
        severity=severity.value if severity else None,
        is_active=is_active,
        target_table=target_table.value if target_table else None,
        schedule=schedule.value if schedule else None,
        group_id=group_id,
        client_id=client_id,
    )
    return Ok(data=_page(items, total, page, page_size))


@router.get("/parents", response_model=Ok[List[RuleOut]])
def list_available_parents(
    exclude_id: Optional[int] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    rules = rule_store.available_parent_rules(db, exclude_id=exclude_id)
    return Ok(data=[RuleOut.model_validate(r) for r in rules])


@router.get("/deleted", response_model=Ok[Page[RuleOut]])
def list_deleted_rules(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),  # 🔒 ADMIN ONLY
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    items, total = rule_store.list_deleted_rules(db, page=page, page_size=page_size)
    return Ok(data=_page(items, total, page, page_size))


@router.get("/{rule_id}", response_model=Ok[RuleDetail])
def get_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return Ok(data=_detail(db, rule_id))


# -------------------------
# Write (ADMIN ONLY)
# -------------------------
@router.post("", response_model=Ok[RuleDetail], status_code=status.HTTP_201_CREATED)
def create_rule(
    payload: RuleCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),  # 🔒 ADMIN ONLY
):
    r = rule_store.create_rule(db, payload)
    return Ok(data=_detail(db, r.id))


@router.patch("/{rule_id}", response_model=Ok[RuleOut])
def update_rule(
    rule_id: int,
    payload: RuleUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),  # 🔒 ADMIN ONLY
):
    r = rule_store.update_rule(db, rule_id, payload)
    return Ok(data=RuleOut.model_validate(r))


@router.post("/{rule_id}/toggle", response_model=Ok[RuleOut])
def toggle_rule(
    rule_id: int,
    payload: ToggleRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),  # 🔒 ADMIN ONLY
):
    r = rule_store.toggle_rule(db, rule_id, payload.is_active)
    return Ok(data=RuleOut.model_validate(r))


@router.delete("/{rule_id}", response_model=Ok[DeleteResult])
def delete_rule(
    rule_id: int,
    delete_group: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),  # 🔒 ADMIN ONLY
):
    ids = rule_store.delete_rule(db, rule_id, delete_group=delete_group, deleted_by=current_user.email)
    return Ok(data=DeleteResult(deleted_ids=ids))


@router.post("/{rule_id}/restore", response_model=Ok[RestoreResult])
def restore_rule(
    rule_id: int,
    restore_group: bool = False,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),  # 🔒 ADMIN ONLY
):
    ids = rule_store.restore_rule(db, rule_id, restore_group=restore_group)
    return Ok(data=RestoreResult(restored_ids=ids))


@router.delete("/{rule_id}/permanent", response_model=Ok[DeleteResult])
def hard_delete_rule(
    rule_id: int,
    delete_group: bool = False,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _: User = Depends(require_admin),  # 🔒 ADMIN ONLY
):
    ids = rule_store.hard_delete_rule(
        db,
        rule_id,
        delete_group=delete_group,
        retention_days=settings.WATCHTOWER_HARD_DELETE_AFTER_DAYS,
    )
    return Ok(data=DeleteResult(deleted_ids=ids))
