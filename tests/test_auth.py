"""Tests for tokens, cron secret checks and the admin seed."""

from datetime import timedelta

from automize.core.bootstrap import seed_admin_user
from automize.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_cron_secret,
    verify_password,
)
from automize.models.user import User

from conftest import CRON_SECRET, make_settings


def test_password_hash_roundtrip():
    hashed = get_password_hash("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("other", hashed)


def test_expired_or_foreign_token_is_rejected(settings):
    token = create_access_token({"sub": "1"}, settings)
    assert decode_access_token(token, settings)["sub"] == "1"

    expired = create_access_token({"sub": "1"}, settings, expires_delta=timedelta(seconds=-5))
    assert decode_access_token(expired, settings) is None

    other = make_settings(SECRET_KEY="another-key")
    assert decode_access_token(token, other) is None


def test_cron_secret(settings):
    assert verify_cron_secret(CRON_SECRET, settings)
    assert verify_cron_secret(f"  {CRON_SECRET} ", settings)
    assert not verify_cron_secret("wrong", settings)
    assert not verify_cron_secret(None, settings)


def test_cron_without_secret_is_closed_unless_allowed():
    closed = make_settings(WATCHTOWER_CRON_SECRET=None)
    open_ = make_settings(WATCHTOWER_CRON_SECRET=None, WATCHTOWER_CRON_ALLOW_UNAUTHENTICATED=True)

    assert not verify_cron_secret(None, closed)
    assert verify_cron_secret(None, open_)


def test_seed_admin_user_is_idempotent(db):
    seed_admin_user(db, email="root@automize.io", password="pw", full_name="Root")
    seed_admin_user(db, email="root@automize.io", password="changed", full_name="Root")

    users = db.query(User).filter(User.email == "root@automize.io").all()
    assert len(users) == 1
    assert users[0].is_admin is True
    assert verify_password("pw", users[0].hashed_password)
