# automize/deps.py
from __future__ import annotations

from typing import Iterator

import httpx
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from automize.config import Settings
from automize.core.context import WatchtowerContext
from automize.db import get_db
from automize.services.notifications import NotificationDispatcher


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_context(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Iterator[WatchtowerContext]:
    """
    Contexto por request: settings + sesión + dispatcher con su propio
    cliente HTTP (se cierra al terminar el request).
    """
    client = httpx.Client(
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        transport=request.app.state.http_transport,
    )
    dispatcher = NotificationDispatcher(settings, client=client, sleep=request.app.state.sleep)
    try:
        yield WatchtowerContext(settings=settings, db=db, dispatcher=dispatcher)
    finally:
        client.close()
