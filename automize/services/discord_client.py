# automize/services/discord_client.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from automize.core.errors import NotificationError

logger = logging.getLogger("automize.discord")


class DiscordRelayClient:
    """
    Cliente del relay HTTP del bot IXM.
    POST <IXM_BOT_API_URL> con header x-api-key y JSON {channelId, content}.
    """

    def __init__(self, client: httpx.Client, api_url: Optional[str], api_key: Optional[str]):
        self._client = client
        self.api_url = (api_url or "").strip()
        self.api_key = (api_key or "").strip()

    @property
    def configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    def send(self, channel_id: str, content: str) -> Dict[str, Any]:
        if not self.configured:
            raise NotificationError("Discord bot relay is not configured (IXM_BOT_API_URL / IXM_BOT_API_KEY)")

        try:
            resp = self._client.post(
                self.api_url,
                headers={"x-api-key": self.api_key},
                json={"channelId": str(channel_id), "content": content},
            )
        except httpx.TimeoutException as e:
            raise NotificationError(f"Discord relay timed out for channel {channel_id}") from e
        except httpx.RequestError as e:
            raise NotificationError(f"Discord relay request failed: {e}") from e

        if resp.status_code >= 400:
            detail = _error_detail(resp)
            logger.warning("Discord relay error status=%s channel=%s detail=%s", resp.status_code, channel_id, detail)
            raise NotificationError(f"Discord relay returned {resp.status_code}: {detail}")

        try:
            return resp.json()
        except ValueError:
            return {}


def _error_detail(resp: httpx.Response) -> str:
    try:
        data = resp.json()
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])[:300]
    except ValueError:
        pass
    return (resp.text or "")[:300]
