# automize/routers/pods.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from automize.db import get_db
from automize.models.channel_id import WatchtowerChannelId
from automize.models.pod import Pod
from automize.models.rule import WatchtowerRule
from automize.models.user import User
from automize.routers.auth import get_current_user, require_admin
from automize.schemas.common import Ok
from automize.schemas.fields import CONDITIONS_BY_FIELD_TYPE, TABLE_FIELDS
from automize.schemas.pods import ChannelIdCreate, ChannelIdOut, PodOut

router = APIRouter(prefix="/api/watchtower", tags=["watchtower-destinations"])


@router.get("/pods", response_model=Ok[List[PodOut]])
def list_pods(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    pods = db.execute(select(Pod).order_by(Pod.name.asc())).scalars().all()
    return Ok(data=[PodOut.model_validate(p) for p in pods])


@router.get("/channel-ids", response_model=Ok[List[ChannelIdOut]])
def list_channel_ids(
    rule_id: Optional[int] = Query(None, alias="ruleId"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    if rule_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ruleId is required")

    rows = db.execute(
        select(WatchtowerChannelId)
        .where(WatchtowerChannelId.rule_id == rule_id)
        .order_by(WatchtowerChannelId.id.asc())
    ).scalars().all()
    return Ok(data=[ChannelIdOut.model_validate(r) for r in rows])


@router.post("/channel-ids", response_model=Ok[ChannelIdOut], status_code=status.HTTP_201_CREATED)
def add_channel_id(
    payload: ChannelIdCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),  # 🔒 ADMIN ONLY
):
    rule = db.get(WatchtowerRule, payload.rule_id)
    if not rule or rule.deleted_at is not None:
        raise HTTPException(status_code=404, detail="Rule not found")

    row = WatchtowerChannelId(
        rule_id=payload.rule_id,
        label=payload.label,
        channel_id=payload.channel_id.strip(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return Ok(data=ChannelIdOut.model_validate(row))


@router.delete("/channel-ids/{channel_row_id}", response_model=Ok[ChannelIdOut])
def delete_channel_id(
    channel_row_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),  # 🔒 ADMIN ONLY
):
    row = db.get(WatchtowerChannelId, channel_row_id)
    if not row:
        raise HTTPException(status_code=404, detail="Channel id not found")
    out = ChannelIdOut.model_validate(row)
    db.delete(row)
    db.commit()
    return Ok(data=out)


@router.get("/fields", response_model=Ok[Dict[str, Any]])
def list_fields(_: User = Depends(get_current_user)):
    """Catálogo de campos por tabla y condiciones válidas por tipo de campo."""
    return Ok(
        data={
            "tables": [t.model_dump() for t in TABLE_FIELDS],
            "conditions_by_field_type": {
                k: [c.value for c in v] for k, v in CONDITIONS_BY_FIELD_TYPE.items()
            },
        }
    )
