from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, func

from automize.core.timeutils import utc_now
from automize.db import Base


class FormSubmission(Base):
    __tablename__ = "form_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    form_type = Column(String(64), nullable=False)
    status = Column(String(32), nullable=False, server_default="pending")
    account_name = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)
