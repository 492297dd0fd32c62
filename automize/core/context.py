# automize/core/context.py
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from automize.config import Settings

if TYPE_CHECKING:
    from automize.services.notifications import NotificationDispatcher


@dataclass
class WatchtowerContext:
    """Todo lo que un job de Watchtower necesita, armado al inicio del request."""

    settings: Settings
    db: Session
    dispatcher: "NotificationDispatcher"
