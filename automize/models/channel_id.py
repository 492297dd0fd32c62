from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, func

from automize.core.timeutils import utc_now
from automize.db import Base


class WatchtowerChannelId(Base):
    """Canal de Discord extra asociado a una regla."""

    __tablename__ = "watchtower_channel_ids"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # referencia débil: borrar la regla no borra el canal
    rule_id = Column(Integer, nullable=True, index=True)
    label = Column(String(255), nullable=True)
    channel_id = Column(String(64), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())
