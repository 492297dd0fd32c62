from sqlalchemy import Column, Integer, String

from automize.db import Base


class Pod(Base):
    """Equipo interno; sus canales se usan como destinos de notificación."""

    __tablename__ = "pod"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)

    discord_id = Column(String(64), nullable=True)
    whatsapp_number = Column(String(32), nullable=True)
