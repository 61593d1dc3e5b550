"""Tests for the Telegram notifier and the shared HTTP client."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from factories import make_signal
from vol_edge.common.http import HttpClient, _is_retryable
from vol_edge.notifications.telegram import TelegramNotifier
from vol_edge.signals.models import Direction


def _mock_client(**kwargs) -> AsyncMock:
    client = AsyncMock()
    client.post = AsyncMock(**kwargs)
    client.close = AsyncMock()
    return client


def _closed_position(lifecycle, now):
    lifecycle.act_on_signal(make_signal(), 100.0, now)
    return lifecycle.act_on_signal(make_signal(direction=Direction.SELL), 102.0, now).position


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_no_op_when_not_configured(self):
        notifier = TelegramNotifier(bot_token="", chat_id="")
        assert not notifier.enabled
        assert await notifier.send_message("test") is False

    @pytest.mark.asyncio
    async def test_reads_credentials_from_settings(self):
        with patch("vol_edge.notifications.telegram.get_settings") as mock_settings:
            mock_settings.return_value.telegram_bot_token = "123:ABC"
            mock_settings.return_value.telegram_chat_id = "999"
            notifier = TelegramNotifier()
        assert notifier.enabled

    @pytest.mark.asyncio
    async def test_send_message_posts_to_bot_endpoint(self):
        notifier = TelegramNotifier(bot_token="123:ABC", chat_id="999")
        client = _mock_client(return_value=httpx.Response(200, json={"ok": True}))
        notifier._client = client

        assert await notifier.send_message("Hello") is True
        client.post.assert_called_once_with(
            "/bot123:ABC/sendMessage",
            json={"chat_id": "999", "text": "Hello", "parse_mode": "Markdown"},
        )

    @pytest.mark.asyncio
    async def test_send_message_swallows_http_errors(self):
        notifier = TelegramNotifier(bot_token="123:ABC", chat_id="999")
        notifier._client = _mock_client(side_effect=httpx.HTTPStatusError(
            "Unauthorized",
            request=httpx.Request("POST", "https://api.telegram.org"),
            response=httpx.Response(401),
        ))
        assert await notifier.send_message("Hello") is False

    @pytest.mark.asyncio
    async def test_notify_signals_and_closed(self, lifecycle, now):
        notifier = TelegramNotifier(bot_token="123:ABC", chat_id="999")
        client = _mock_client(return_value=httpx.Response(200, json={"ok": True}))
        notifier._client = client

        signals = [make_signal("AAPL", created_at=now), make_signal("MSFT", created_at=now)]
        await notifier.notify(signals, [_closed_position(lifecycle, now)])

        assert client.post.call_count == 3
        texts = [call.kwargs["json"]["text"] for call in client.post.call_args_list]
        assert "*BUY SIGNAL: AAPL*" in texts[0]
        assert "*CLOSED AAPL* (signal)" in texts[2]

    @pytest.mark.asyncio
    async def test_notify_with_summary(self, now):
        notifier = TelegramNotifier(bot_token="123:ABC", chat_id="999")
        client = _mock_client(return_value=httpx.Response(200, json={"ok": True}))
        notifier._client = client

        await notifier.notify([make_signal(created_at=now)], summary=True)

        assert client.post.call_count == 2
        assert "Volatility Scan Complete" in client.post.call_args.kwargs["json"]["text"]

    @pytest.mark.asyncio
    async def test_notify_no_op_when_disabled(self, now):
        notifier = TelegramNotifier(bot_token="", chat_id="")
        client = _mock_client()
        notifier._client = client

        await notifier.notify([make_signal(created_at=now)])
        client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        notifier = TelegramNotifier(bot_token="123:ABC", chat_id="999")
        client = _mock_client()
        notifier._client = client

        await notifier.close()

        client.close.assert_awaited_once()
        assert notifier._client is None


class TestHttpRetry:
    def test_retryable_statuses(self):
        request = httpx.Request("GET", "https://example.com")
        for status, expected in [(429, True), (503, True), (400, False), (401, False)]:
            exc = httpx.HTTPStatusError("x", request=request, response=httpx.Response(status))
            assert _is_retryable(exc) is expected

    def test_timeouts_retry(self):
        assert _is_retryable(httpx.ReadTimeout("slow"))
        assert not _is_retryable(ValueError("nope"))

    @pytest.mark.asyncio
    async def test_client_uses_explicit_timeout(self):
        async with HttpClient(base_url="https://example.com", timeout=5.0) as client:
            assert client._client.timeout.read == 5.0
