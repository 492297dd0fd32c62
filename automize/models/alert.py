from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, func, text

from automize.core.timeutils import utc_now
from automize.db import Base


class WatchtowerAlert(Base):
    __tablename__ = "watchtower_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # sin FK: la alerta sobrevive a ediciones y borrados de la regla
    rule_id = Column(Integer, nullable=True, index=True)
    rule_name = Column(String(255), nullable=True)
    target_table = Column(String(64), nullable=True)
    snapshot_id = Column(Integer, nullable=True)
    record_key = Column(String(255), nullable=True)
    client_id = Column(String(64), nullable=True)

    message = Column(Text, nullable=False)
    severity = Column(String(16), nullable=False, server_default="medium")
    current_value = Column(Text, nullable=True)
    previous_value = Column(Text, nullable=True)

    dedup_key = Column(String(64), nullable=True)

    is_acknowledged = Column(Boolean, nullable=False, default=False, server_default="false")
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    acknowledged_by = Column(String(255), nullable=True)

    notified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
        index=True,
    )

    __table_args__ = (
        # una sola alerta abierta por (regla, entidad)
        Index(
            "uq_watchtower_alerts_open_dedup",
            "rule_id",
            "dedup_key",
            unique=True,
            postgresql_where=text("is_acknowledged = false"),
            sqlite_where=text("is_acknowledged = 0"),
        ),
    )
