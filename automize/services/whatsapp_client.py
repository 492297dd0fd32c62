# automize/services/whatsapp_client.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from automize.core.errors import NotificationError

logger = logging.getLogger("automize.whatsapp")

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def as_whatsapp_address(number: str) -> str:
    n = (number or "").strip()
    return n if n.startswith("whatsapp:") else f"whatsapp:{n}"


class WhatsAppClient:
    """Envío de mensajes WhatsApp vía Twilio Messages API (form-encoded, basic auth)."""

    def __init__(
        self,
        client: httpx.Client,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
    ):
        self._client = client
        self.account_sid = (account_sid or "").strip()
        self.auth_token = (auth_token or "").strip()
        self.from_number = (from_number or "").strip()

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"

    def send(self, to: str, body: str) -> Dict[str, Any]:
        if not self.configured:
            raise NotificationError("Twilio is not configured (TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN / TWILIO_WHATSAPP_NUMBER)")
        if not (to or "").strip():
            raise NotificationError("Empty WhatsApp recipient")

        try:
            resp = self._client.post(
                self.messages_url,
                auth=(self.account_sid, self.auth_token),
                data={
                    "From": as_whatsapp_address(self.from_number),
                    "To": as_whatsapp_address(to),
                    "Body": body,
                },
            )
        except httpx.TimeoutException as e:
            raise NotificationError(f"Twilio timed out sending to {to}") from e
        except httpx.RequestError as e:
            raise NotificationError(f"Twilio request failed: {e}") from e

        if resp.status_code >= 400:
            logger.warning("Twilio error status=%s to=%s body=%s", resp.status_code, to, (resp.text or "")[:300])
            raise NotificationError(f"Twilio returned {resp.status_code}")

        try:
            return resp.json()
        except ValueError:
            return {}
