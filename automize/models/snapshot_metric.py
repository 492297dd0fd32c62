from __future__ import annotations

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import relationship

from automize.core.timeutils import utc_now
from automize.db import Base


def _num():
    return Column(Numeric(18, 4, asdecimal=False), nullable=True)


class RefreshSnapshotMetric(Base):
    """Métricas por cuenta de un refresh (autometric / financialx)."""

    __tablename__ = "refresh_snapshot_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    snapshot_id = Column(
        Integer,
        ForeignKey("sheet_refresh_snapshots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    account_name = Column(String(255), nullable=True, index=True)
    pod = Column(String(128), nullable=True)
    is_monitored = Column(Boolean, nullable=True)

    # timeframe
    ad_spend_timeframe = _num()
    roas_timeframe = _num()
    fb_revenue_timeframe = _num()
    shopify_revenue_timeframe = _num()
    orders_timeframe = _num()

    # rebill
    ad_spend_rebill = _num()
    roas_rebill = _num()
    fb_revenue_rebill = _num()
    shopify_revenue_rebill = _num()
    orders_rebill = _num()
    rebill_status = Column(String(64), nullable=True)
    last_rebill_date = Column(Date, nullable=True)

    # ads
    cpa_purchase = _num()
    cpc = _num()
    cpm = _num()
    ctr = _num()
    impressions = _num()
    hook_rate = _num()
    atc_rate = _num()
    bounce_rate = _num()

    is_error = Column(Boolean, nullable=True)
    error_detail = Column(String(1024), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())

    snapshot = relationship("SheetRefreshSnapshot", back_populates="metrics")
