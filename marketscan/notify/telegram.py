"""Lifecycle notifications over Telegram.

Notification failures are logged and swallowed; a state transition that has
already been persisted is never undone because a message could not be sent.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

from marketscan.lifecycle.models import Signal
from marketscan.notify.formatter import (
    format_closed,
    format_created,
    format_expired,
    format_triggered,
)

logger = logging.getLogger("marketscan.notify")

TELEGRAM_API = "https://api.telegram.org"


@runtime_checkable
class Notifier(Protocol):
    """Receives read-only snapshots of signal lifecycle events."""

    async def notify_created(self, signal: Signal) -> None: ...

    async def notify_triggered(self, signal: Signal) -> None: ...

    async def notify_expired(self, signal: Signal) -> None: ...

    async def notify_closed(self, signal: Signal) -> None: ...


class TelegramNotifier:
    """Sends Markdown messages via the Bot API ``sendMessage`` method.

    Without a bot token and chat id the notifier is disabled and only logs.
    """

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        api_url: str = TELEGRAM_API,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._api_url = api_url.rstrip("/")
        self.enabled = bool(bot_token and chat_id)
        if not self.enabled:
            logger.warning("Telegram not configured, notifications will only be logged")

    async def send(self, text: str) -> bool:
        """Send *text*; returns ``True`` on success, never raises."""
        logger.debug("Notification: %s", text)
        if not self.enabled:
            return False

        url = f"{self._api_url}/bot{self._bot_token}/sendMessage"
        payload = {"chat_id": self._chat_id, "text": text, "parse_mode": "Markdown"}
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(url, json=payload, timeout=10.0)
        except httpx.HTTPError as exc:
            logger.error("Telegram send error: %s", exc)
            return False

        if resp.status_code != 200:
            logger.error("Telegram send failed: %d %s", resp.status_code, resp.text[:200])
            return False
        return True

    async def _notify(self, event: str, signal: Signal, formatter) -> None:
        try:
            text = formatter(signal)
        except (ValueError, TypeError, AttributeError) as exc:
            logger.error("Could not format %s notification for signal %s: %s", event, signal.id, exc)
            return
        await self.send(text)

    async def notify_created(self, signal: Signal) -> None:
        await self._notify("created", signal, format_created)

    async def notify_triggered(self, signal: Signal) -> None:
        await self._notify("triggered", signal, format_triggered)

    async def notify_expired(self, signal: Signal) -> None:
        await self._notify("expired", signal, format_expired)

    async def notify_closed(self, signal: Signal) -> None:
        await self._notify("closed", signal, format_closed)
