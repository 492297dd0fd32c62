from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from automize.db import get_db
from automize.models.user import User
from automize.routers.auth import get_current_user
from automize.schemas.alerts import StatsOut
from automize.schemas.common import Ok
from automize.services.alert_store import watchtower_stats

router = APIRouter(prefix="/api/watchtower", tags=["watchtower-stats"])


@router.get("/stats", response_model=Ok[StatsOut])
def get_stats(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return Ok(data=StatsOut(**watchtower_stats(db)))
