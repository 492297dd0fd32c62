# automize/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import hmac

from jose import jwt, JWTError
from passlib.context import CryptContext

from automize.config import Settings

# ------------------------------
# Passwords (usuarios)
# ------------------------------
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)

ALGORITHM = "HS256"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# ------------------------------
# JWT
# ------------------------------
def create_access_token(
    data: Dict[str, Any],
    settings: Settings,
    expires_delta: Optional[timedelta] = None,
) -> str:
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ------------------------------
# Cron secret
# ------------------------------
def verify_cron_secret(provided: Optional[str], settings: Settings) -> bool:
    """
    Sin secreto configurado se rechaza, salvo que se permita explícitamente
    con WATCHTOWER_CRON_ALLOW_UNAUTHENTICATED.
    """
    expected = (settings.WATCHTOWER_CRON_SECRET or "").strip()
    if not expected:
        return bool(settings.WATCHTOWER_CRON_ALLOW_UNAUTHENTICATED)
    if not provided:
        return False
    return hmac.compare_digest(provided.strip().encode("utf-8"), expected.encode("utf-8"))
