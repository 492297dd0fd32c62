from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from automize.core.timeutils import utc_now
from automize.db import Base, JSONType


class WatchtowerRule(Base):
    __tablename__ = "watchtower_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # qué se mira
    target_table = Column(String(64), nullable=False, index=True)
    field_name = Column(String(128), nullable=False)
    condition = Column(String(32), nullable=False)
    threshold_value = Column(String(255), nullable=True)
    time_range_days = Column(Integer, nullable=True)        # None = all time, 0 = hoy
    row_filters = Column(JSONType, nullable=True)            # {"target_table": ..., campo: valor}
    client_id = Column(String(64), nullable=True, index=True)

    severity = Column(String(16), nullable=False, server_default="medium")
    schedule = Column(String(16), nullable=False, server_default="immediate")
    notify_time = Column(String(8), nullable=True)           # HH:MM, solo informativo
    notify_day_of_week = Column(Integer, nullable=True)      # 0 = domingo

    is_active = Column(Boolean, nullable=False, default=True, server_default="true")

    # dependencias / reglas compuestas
    parent_rule_id = Column(Integer, nullable=True, index=True)
    dependency_condition = Column(String(32), nullable=True)
    group_id = Column(String(64), nullable=True, index=True)
    logic_operator = Column(String(8), nullable=True)

    # destinos
    notify_discord = Column(Boolean, nullable=False, default=True, server_default="true")
    discord_channel_id = Column(String(64), nullable=True)
    extra_discord_channel_ids = Column(JSONType, nullable=True)
    notify_whatsapp = Column(Boolean, nullable=False, default=False, server_default="false")
    pod_ids = Column(JSONType, nullable=True)

    # tracking
    last_triggered_at = Column(DateTime(timezone=True), nullable=True)
    trigger_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_notified_at = Column(DateTime(timezone=True), nullable=True)

    # soft delete
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    deleted_by = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )
