# automize/config.py
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- Backend / JWT / DB ---
    DATABASE_URL: str
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # --- Seed admin (opcional) ---
    INITIAL_ADMIN_EMAIL: Optional[str] = None
    INITIAL_ADMIN_PASSWORD: Optional[str] = None
    INITIAL_ADMIN_FULL_NAME: Optional[str] = None

    # --- Watchtower ---
    WATCHTOWER_CRON_SECRET: Optional[str] = None
    # Only for local development: lets /cron run without a secret configured
    WATCHTOWER_CRON_ALLOW_UNAUTHENTICATED: bool = False
    WATCHTOWER_MAX_ALERTS_PER_RULE: int = 5
    WATCHTOWER_DEPENDENCY_WINDOW_HOURS: int = 24
    WATCHTOWER_HARD_DELETE_AFTER_DAYS: int = 30

    # --- Discord (IXM bot relay) ---
    IXM_BOT_API_URL: Optional[str] = None
    IXM_BOT_API_KEY: Optional[str] = None

    # --- WhatsApp (Twilio) ---
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_WHATSAPP_NUMBER: Optional[str] = None

    # ~10 msg/s ceiling on outbound sends
    NOTIFY_SEND_DELAY_SECONDS: float = 0.1
    HTTP_TIMEOUT_SECONDS: float = 15.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
