from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text, func
from sqlalchemy.orm import relationship

from automize.core.timeutils import utc_now
from automize.db import Base


class ApiSnapshot(Base):
    __tablename__ = "api_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)

    source_name = Column(String(128), nullable=False)
    status = Column(String(32), nullable=False, server_default="pending")
    snapshot_type = Column(String(64), nullable=True)
    total_records = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())

    records = relationship("ApiRecord", back_populates="snapshot", passive_deletes=True)
