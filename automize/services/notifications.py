# automize/services/notifications.py
from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from automize.config import Settings
from automize.core.errors import NotificationError
from automize.core.timeutils import as_utc
from automize.models.alert import WatchtowerAlert
from automize.models.channel_id import WatchtowerChannelId
from automize.models.pod import Pod
from automize.models.rule import WatchtowerRule
from automize.services.discord_client import DiscordRelayClient
from automize.services.whatsapp_client import WhatsAppClient

logger = logging.getLogger("automize.watchtower.notify")

SEVERITY_EMOJI = {
    "critical": "🚨",
    "high": "🔴",
    "medium": "⚠️",
    "low": "ℹ️",
}

# Canal por defecto cuando la regla no tiene destinos propios
SEVERITY_DEFAULT_CHANNEL = {
    "critical": "watchtower-critical",
    "high": "watchtower-critical",
    "medium": "watchtower-alerts",
    "low": "watchtower-info",
}

# digest de corridas daily/weekly
DIGEST_MAX_ITEMS = 5
DIGEST_SEVERITY_ORDER = ("critical", "high", "medium", "low")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class DispatchResult:
    discord: int = 0
    whatsapp: int = 0
    attempts: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return (self.discord + self.whatsapp) > 0


# -------------------------
# Formato
# -------------------------
def format_discord_alert(alert: WatchtowerAlert, rule: WatchtowerRule) -> str:
    emoji = SEVERITY_EMOJI.get(alert.severity, "📢")
    ts = as_utc(alert.created_at)
    timestamp = ts.strftime("%Y-%m-%d %H:%M UTC") if ts else "N/A"
    condition = f"{rule.condition} {rule.threshold_value or ''}".rstrip()
    lines = [
        f"{emoji} **{rule.name}** [{(alert.severity or '').upper()}]",
        "",
        f"**Message:** {alert.message}",
        "",
        "**Details:**",
        f"• Current Value: `{alert.current_value or 'N/A'}`",
        f"• Previous Value: `{alert.previous_value or 'N/A'}`",
        f"• Field: `{rule.field_name}`",
        f"• Condition: {condition}",
        "",
        f"**Timestamp:** {timestamp}",
        f"**Alert ID:** {alert.id}",
    ]
    return "\n".join(lines)


def format_whatsapp_alert(alert: WatchtowerAlert, rule: WatchtowerRule) -> str:
    emoji = SEVERITY_EMOJI.get(alert.severity, "📢")
    lines = [
        f"{emoji} Watchtower [{(alert.severity or '').upper()}] {rule.name}",
        alert.message,
    ]
    if alert.current_value:
        lines.append(f"Current: {alert.current_value}")
    return "\n".join(lines)


def _digest_recent(alerts: Sequence[WatchtowerAlert]) -> List[WatchtowerAlert]:
    # más recientes primero
    def _key(a: WatchtowerAlert):
        return (as_utc(a.created_at) or _EPOCH, a.id or 0)

    return sorted(alerts, key=_key, reverse=True)


def _severity_counts(alerts: Sequence[WatchtowerAlert]) -> List[Tuple[str, int]]:
    counts = Counter(a.severity for a in alerts)
    return [(sev, counts[sev]) for sev in DIGEST_SEVERITY_ORDER if counts[sev]]


def format_discord_digest(alerts: Sequence[WatchtowerAlert], rule: WatchtowerRule) -> str:
    """Un solo mensaje por regla para las corridas daily/weekly."""
    lines = [
        f"📊 **Watchtower Alert Digest** for rule: **{rule.name}**",
        "",
        f"**Total Alerts:** {len(alerts)}",
    ]
    for sev, n in _severity_counts(alerts):
        lines.append(f"• {SEVERITY_EMOJI[sev]} {sev.capitalize()}: {n}")

    recent = _digest_recent(alerts)
    lines += ["", "**Recent Alerts:**"]
    for i, a in enumerate(recent[:DIGEST_MAX_ITEMS], start=1):
        lines.append(f"{i}. {SEVERITY_EMOJI.get(a.severity, '📢')} {a.message}")
    if len(recent) > DIGEST_MAX_ITEMS:
        lines += ["", f"... and {len(recent) - DIGEST_MAX_ITEMS} more alerts"]
    return "\n".join(lines)


def format_whatsapp_digest(alerts: Sequence[WatchtowerAlert], rule: WatchtowerRule) -> str:
    lines = [f"📊 Watchtower digest: {rule.name} ({len(alerts)} alerts)"]
    for a in _digest_recent(alerts)[:DIGEST_MAX_ITEMS]:
        lines.append(f"- [{(a.severity or '').upper()}] {a.message}")
    return "\n".join(lines)


# -------------------------
# Destinos
# -------------------------
def _dedupe(values) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        s = str(v or "").strip()
        if s and s not in seen:
            seen.add(s)
            out.append(s)
    return out


def _rule_pods(db: Session, rule: WatchtowerRule) -> List[Pod]:
    ids = [int(i) for i in (rule.pod_ids or []) if str(i).strip().isdigit()]
    if not ids:
        return []
    return list(db.execute(select(Pod).where(Pod.id.in_(ids)).order_by(Pod.id)).scalars().all())


def resolve_discord_channels(db: Session, rule: WatchtowerRule, severity: Optional[str] = None) -> List[str]:
    """
    Orden: canal de la regla, extras de la regla, watchtower_channel_ids,
    discord_id de los pods. Si no hay ninguno, canal por severidad.
    """
    extra_rows = db.execute(
        select(WatchtowerChannelId.channel_id)
        .where(WatchtowerChannelId.rule_id == rule.id)
        .order_by(WatchtowerChannelId.id)
    ).scalars().all()

    channels = _dedupe(
        [rule.discord_channel_id]
        + list(rule.extra_discord_channel_ids or [])
        + list(extra_rows)
        + [p.discord_id for p in _rule_pods(db, rule)]
    )
    if not channels:
        sev = severity or rule.severity
        channels = [SEVERITY_DEFAULT_CHANNEL.get(sev, "watchtower-alerts")]
    return channels


def resolve_whatsapp_numbers(db: Session, rule: WatchtowerRule) -> List[str]:
    return _dedupe(p.whatsapp_number for p in _rule_pods(db, rule))


# -------------------------
# Dispatcher
# -------------------------
class NotificationDispatcher:
    """
    Envía alertas (una por una, o en digest) a todos los destinos de su
    regla. Nunca lanza: los fallos se registran y se descartan (sin reintentos).
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)
        self.discord = DiscordRelayClient(self.client, settings.IXM_BOT_API_URL, settings.IXM_BOT_API_KEY)
        self.whatsapp = WhatsAppClient(
            self.client,
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
            settings.TWILIO_WHATSAPP_NUMBER,
        )
        self._sleep = sleep
        self._sent_any = False

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def _pace(self) -> None:
        # pausa fija entre envíos consecutivos (~10 msg/s)
        delay = float(self.settings.NOTIFY_SEND_DELAY_SECONDS or 0)
        if self._sent_any and delay > 0:
            self._sleep(delay)
        self._sent_any = True

    def _deliver(
        self,
        db: Session,
        rule: WatchtowerRule,
        severity: Optional[str],
        discord_content: Callable[[], str],
        whatsapp_body: Callable[[], str],
        ref: str,
    ) -> DispatchResult:
        result = DispatchResult()

        if rule.notify_discord:
            if not self.discord.configured:
                logger.warning("Discord not configured; %s not sent to Discord", ref)
            else:
                content = discord_content()
                for channel in resolve_discord_channels(db, rule, severity):
                    self._pace()
                    result.attempts += 1
                    try:
                        self.discord.send(channel, content)
                        result.discord += 1
                    except NotificationError as e:
                        logger.error("Discord send failed %s channel=%s error=%s", ref, channel, e)
                        result.errors.append(str(e))

        if rule.notify_whatsapp:
            numbers = resolve_whatsapp_numbers(db, rule)
            if numbers and not self.whatsapp.configured:
                logger.warning("Twilio not configured; %s not sent to WhatsApp", ref)
            elif numbers:
                body = whatsapp_body()
                for number in numbers:
                    self._pace()
                    result.attempts += 1
                    try:
                        self.whatsapp.send(number, body)
                        result.whatsapp += 1
                    except NotificationError as e:
                        logger.error("WhatsApp send failed %s to=%s error=%s", ref, number, e)
                        result.errors.append(str(e))

        logger.info(
            "Dispatched %s discord=%s whatsapp=%s attempts=%s",
            ref,
            result.discord,
            result.whatsapp,
            result.attempts,
        )
        return result

    def send_alert_notifications(
        self,
        db: Session,
        alert: WatchtowerAlert,
        rule: WatchtowerRule,
    ) -> DispatchResult:
        return self._deliver(
            db,
            rule,
            alert.severity,
            lambda: format_discord_alert(alert, rule),
            lambda: format_whatsapp_alert(alert, rule),
            ref=f"alert={alert.id}",
        )

    def send_digest_notifications(
        self,
        db: Session,
        alerts: Sequence[WatchtowerAlert],
        rule: WatchtowerRule,
    ) -> DispatchResult:
        """Un mensaje por destino con todas las alertas pendientes de la regla."""
        if not alerts:
            return DispatchResult()
        return self._deliver(
            db,
            rule,
            rule.severity,
            lambda: format_discord_digest(alerts, rule),
            lambda: format_whatsapp_digest(alerts, rule),
            ref=f"digest rule={rule.id} alerts={len(alerts)}",
        )
