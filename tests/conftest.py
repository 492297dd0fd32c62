"""Pytest fixtures for Watchtower tests (in-memory sqlite, mocked HTTP)."""

from typing import Callable, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient

from automize.config import Settings
from automize.core.context import WatchtowerContext
from automize.core.security import create_access_token, get_password_hash
from automize.db import Base
from automize.main import create_app
from automize.models.sheet_snapshot import SheetRefreshSnapshot
from automize.models.snapshot_metric import RefreshSnapshotMetric
from automize.models.rule import WatchtowerRule
from automize.models.user import User
from automize.services.notifications import NotificationDispatcher

CRON_SECRET = "cron-test-secret"
DISCORD_URL = "https://relay.example.com/send"


class RecordingTransport:
    """httpx.MockTransport that keeps every outbound request."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_settings(**overrides) -> Settings:
    values = dict(
        DATABASE_URL="sqlite://",
        SECRET_KEY="test-secret-key",
        WATCHTOWER_CRON_SECRET=CRON_SECRET,
        IXM_BOT_API_URL=DISCORD_URL,
        IXM_BOT_API_KEY="relay-key",
        TWILIO_ACCOUNT_SID="AC123",
        TWILIO_AUTH_TOKEN="twilio-token",
        TWILIO_WHATSAPP_NUMBER="+15550001111",
        NOTIFY_SEND_DELAY_SECONDS=0.1,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def http() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def app(settings, http, sleeps):
    application = create_app(settings, http_transport=http.transport, sleep=sleeps.append)
    Base.metadata.create_all(application.state.engine)
    yield application
    Base.metadata.drop_all(application.state.engine)
    application.state.engine.dispose()


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dispatcher(settings, http, sleeps):
    d = NotificationDispatcher(
        settings,
        client=httpx.Client(transport=http.transport),
        sleep=sleeps.append,
    )
    yield d
    d.client.close()


@pytest.fixture
def ctx(settings, db, dispatcher) -> WatchtowerContext:
    return WatchtowerContext(settings=settings, db=db, dispatcher=dispatcher)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


# -------------------------
# Usuarios / auth
# -------------------------
def _user(db, email: str, is_admin: bool) -> User:
    u = User(
        email=email,
        full_name=email.split("@")[0],
        hashed_password=get_password_hash("password123"),
        is_active=True,
        is_admin=is_admin,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def admin_user(db) -> User:
    return _user(db, "admin@automize.io", is_admin=True)


@pytest.fixture
def viewer_user(db) -> User:
    return _user(db, "viewer@automize.io", is_admin=False)


def auth_headers(user: User, settings: Settings) -> Dict[str, str]:
    token = create_access_token({"sub": str(user.id)}, settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user, settings) -> Dict[str, str]:
    return auth_headers(admin_user, settings)


@pytest.fixture
def viewer_headers(viewer_user, settings) -> Dict[str, str]:
    return auth_headers(viewer_user, settings)


# -------------------------
# Datos
# -------------------------
@pytest.fixture
def make_snapshot(db) -> Callable[..., SheetRefreshSnapshot]:
    def _make(metrics, refresh_type="autometric", refresh_status="completed", created_at=None):
        snap = SheetRefreshSnapshot(refresh_type=refresh_type, refresh_status=refresh_status)
        if created_at is not None:
            snap.created_at = created_at
        db.add(snap)
        db.flush()
        for m in metrics:
            db.add(RefreshSnapshotMetric(snapshot_id=snap.id, **m))
        db.commit()
        db.refresh(snap)
        return snap

    return _make


@pytest.fixture
def make_rule(db) -> Callable[..., WatchtowerRule]:
    def _make(**kwargs):
        values = dict(
            name="Low ROAS",
            target_table="refresh_snapshot_metrics",
            field_name="roas_timeframe",
            condition="less_than",
            threshold_value="1.5",
            severity="high",
            schedule="immediate",
            is_active=True,
            notify_discord=False,
            notify_whatsapp=False,
            trigger_count=0,
        )
        values.update(kwargs)
        r = WatchtowerRule(**values)
        db.add(r)
        db.commit()
        db.refresh(r)
        return r

    return _make
