from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from automize.core.timeutils import utc_now
from automize.db import Base


class SheetRefreshSnapshot(Base):
    __tablename__ = "sheet_refresh_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)

    sheet_id = Column(String(128), nullable=True)
    refresh_type = Column(String(32), nullable=False, index=True)      # autometric | financialx
    refresh_status = Column(String(32), nullable=False, server_default="pending")
    date_preset = Column(String(64), nullable=True)
    snapshot_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())

    metrics = relationship("RefreshSnapshotMetric", back_populates="snapshot", passive_deletes=True)
