from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import relationship

from automize.core.timeutils import utc_now
from automize.db import Base


class ApiRecord(Base):
    __tablename__ = "api_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    snapshot_id = Column(
        Integer,
        ForeignKey("api_snapshots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    external_id = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    category = Column(String(128), nullable=True)
    status = Column(String(64), nullable=True)
    amount = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    quantity = Column(Integer, nullable=True)
    record_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())

    snapshot = relationship("ApiSnapshot", back_populates="records")
