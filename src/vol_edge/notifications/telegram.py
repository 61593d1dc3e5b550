"""Telegram Bot API notifications for new signals and closed positions."""

from __future__ import annotations

import logging

import httpx

from vol_edge.common.http import HttpClient
from vol_edge.config import get_settings
from vol_edge.signals.formatters import format_telegram_signal, format_telegram_summary
from vol_edge.signals.models import Signal
from vol_edge.trading.formatters import format_telegram_closed
from vol_edge.trading.models import Position

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Send signal and position alerts via the Telegram Bot API.

    Delivery failures are logged and reported as False, never raised, so a
    flaky chat cannot stall the monitor.
    """

    def __init__(
        self,
        bot_token: str | None = None,
        chat_id: str | None = None,
    ) -> None:
        if bot_token is None or chat_id is None:
            settings = get_settings()
            bot_token = bot_token if bot_token is not None else settings.telegram_bot_token
            chat_id = chat_id if chat_id is not None else settings.telegram_chat_id
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._client: HttpClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    async def _get_client(self) -> HttpClient:
        if self._client is None:
            self._client = HttpClient(base_url="https://api.telegram.org")
        return self._client

    async def send_message(self, text: str, parse_mode: str = "Markdown") -> bool:
        """Send a message via the Telegram Bot API.

        Returns True if the message was sent successfully, False otherwise.
        """
        if not self.enabled:
            logger.debug("Telegram not configured, skipping message")
            return False

        try:
            client = await self._get_client()
            await client.post(
                f"/bot{self._bot_token}/sendMessage",
                json={
                    "chat_id": self._chat_id,
                    "text": text,
                    "parse_mode": parse_mode,
                },
            )
            return True
        except httpx.HTTPError:
            logger.warning("Failed to send Telegram message", exc_info=True)
            return False

    async def notify_signal(self, signal: Signal) -> bool:
        return await self.send_message(format_telegram_signal(signal))

    async def notify_closed(self, position: Position) -> bool:
        return await self.send_message(format_telegram_closed(position))

    async def notify_summary(self, signals: list[Signal]) -> bool:
        return await self.send_message(format_telegram_summary(signals))

    async def notify(
        self,
        signals: list[Signal],
        closed: list[Position] | None = None,
        summary: bool = False,
    ) -> None:
        """Alert on every new signal and closed position, optionally followed
        by a tick summary.

        Args:
            signals: signals emitted this tick
            closed: positions closed this tick (signal, stop or flatten)
            summary: also send a summary message
        """
        if not self.enabled:
            return

        closed = closed or []
        sent = 0
        for signal in signals:
            sent += await self.notify_signal(signal)
        for position in closed:
            sent += await self.notify_closed(position)
        if summary:
            sent += await self.notify_summary(signals)

        logger.info(
            "Telegram: sent %d message(s) (%d signal(s), %d closed)",
            sent, len(signals), len(closed),
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
