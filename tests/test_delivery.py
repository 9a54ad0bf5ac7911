"""
Tests for delivery.py -- formatting paid summaries and posting them back to
Discord and Telegram.

discord.Webhook.partial and the Telegram Bot are mocked; nothing leaves the
process.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest
import pytz
from telegram.error import TelegramError

from delivery import (
    DeliveryRouter,
    DiscordDelivery,
    TelegramDelivery,
    format_delivery_message,
    strip_payment_noise,
)
from store.models import DISCORD, TELEGRAM, PendingCallback
from summary.models import SummaryResult
from utils.constants import TELEGRAM_PAYMENT_CONFIRMED

EXPIRES = datetime(2025, 3, 14, 10, 0, tzinfo=pytz.UTC) + timedelta(minutes=15)
RESULT = SummaryResult(
    summary="Good morning! Here is what happened in the last 60 minutes:\n• Alice shipped it.",
    actionables=["@alice - write release notes", "@bob - tag v2"],
    model="gemini-test",
)


def _discord_callback(**kwargs):
    fields = {"application_id": "999", "interaction_token": "interaction-token"}
    fields.update(kwargs)
    return PendingCallback("tok", DISCORD, "222", 60, EXPIRES, guild_id="111", **fields)


def _telegram_callback(**kwargs):
    return PendingCallback("tok", TELEGRAM, "-100", 60, EXPIRES, **kwargs)


def _http_error(cls, status):
    return cls(MagicMock(status=status, reason="error"), "request failed")


class TestStripPaymentNoise:

    def test_removes_payment_prompt(self):
        summary = (
            "💳 **Payment Required**\n\nTo summarise this channel, please pay **$0.10 USDC** via x402.\n\n"
            "After payment, your summary will appear here automatically.\n"
            "Good morning! The team shipped v2."
        )
        assert strip_payment_noise(summary) == "Good morning! The team shipped v2."

    def test_removes_pay_links(self):
        summary = "Good morning! Alice shared https://bot.example.com/pay?source=discord with the team."
        assert "https://" not in strip_payment_noise(summary)

    def test_keeps_original_when_nothing_useful_remains(self):
        assert strip_payment_noise("https://x.io/pay") == "https://x.io/pay"
        assert strip_payment_noise("") == "Summary generated successfully."


class TestFormatDeliveryMessage:

    def test_markdown_with_action_items(self):
        assert format_delivery_message(RESULT) == (
            "✅ **Payment Confirmed**\n\n"
            f"{RESULT.summary}\n\n"
            "**Action Items**\n"
            "1. @alice - write release notes\n"
            "2. @bob - tag v2"
        )

    def test_markdown_without_action_items(self):
        text = format_delivery_message(SummaryResult(summary="Good morning! All quiet.", actionables=[]))
        assert text.endswith("*No action items identified.*")

    def test_plain_text(self):
        text = format_delivery_message(RESULT, markdown=False)
        assert "*" not in text
        assert text.startswith("✅ Payment Confirmed\n\n")
        assert "Action Items\n1. @alice - write release notes" in text


class TestDiscordDelivery:

    @pytest.mark.asyncio
    async def test_follow_up_via_interaction_webhook(self):
        client = MagicMock()
        webhook = MagicMock()
        webhook.send = AsyncMock()

        with patch("delivery.discord.Webhook.partial", return_value=webhook) as partial:
            await DiscordDelivery(client).deliver(_discord_callback(), RESULT)

        partial.assert_called_once_with(999, "interaction-token", client=client)
        webhook.send.assert_awaited_once_with(format_delivery_message(RESULT))
        client.get_channel.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_interaction_posts_to_channel(self):
        client = MagicMock()
        channel = MagicMock()
        channel.send = AsyncMock()
        client.get_channel.return_value = channel
        webhook = MagicMock()
        webhook.send = AsyncMock(side_effect=_http_error(discord.NotFound, 404))

        with patch("delivery.discord.Webhook.partial", return_value=webhook):
            await DiscordDelivery(client).deliver(_discord_callback(), RESULT)

        client.get_channel.assert_called_once_with(222)
        channel.send.assert_awaited_once_with(format_delivery_message(RESULT))

    @pytest.mark.asyncio
    async def test_without_interaction_fetches_channel(self):
        client = MagicMock()
        client.get_channel.return_value = None
        channel = MagicMock()
        channel.send = AsyncMock()
        client.fetch_channel = AsyncMock(return_value=channel)

        await DiscordDelivery(client).deliver(_discord_callback(application_id=None, interaction_token=None), RESULT)

        client.fetch_channel.assert_awaited_once_with(222)
        channel.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_long_summary_is_split(self):
        client = MagicMock()
        webhook = MagicMock()
        webhook.send = AsyncMock()
        long_result = SummaryResult(
            summary="Good morning!\n" + "\n".join(f"• Point number {i} about the release." for i in range(120)),
            actionables=[],
        )

        with patch("delivery.discord.Webhook.partial", return_value=webhook):
            await DiscordDelivery(client).deliver(_discord_callback(), long_result)

        assert webhook.send.await_count >= 2
        assert all(len(call.args[0]) <= 2000 for call in webhook.send.await_args_list)


class TestTelegramDelivery:

    @pytest.mark.asyncio
    async def test_sends_summary_and_updates_prompt(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        bot.edit_message_text = AsyncMock()

        await TelegramDelivery(bot).deliver(_telegram_callback(thread_id=7, payment_message_id=55), RESULT)

        bot.send_message.assert_awaited_once_with(
            chat_id=-100,
            text=format_delivery_message(RESULT, markdown=False),
            message_thread_id=7,
        )
        bot.edit_message_text.assert_awaited_once_with(
            chat_id=-100,
            message_id=55,
            text=TELEGRAM_PAYMENT_CONFIRMED,
        )

    @pytest.mark.asyncio
    async def test_without_prompt_message(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        bot.edit_message_text = AsyncMock()

        await TelegramDelivery(bot).deliver(_telegram_callback(), RESULT)

        assert bot.send_message.await_args.kwargs["message_thread_id"] is None
        bot.edit_message_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_prompt_edit_failure_is_ignored(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        bot.edit_message_text = AsyncMock(side_effect=TelegramError("Message to edit not found"))

        await TelegramDelivery(bot).deliver(_telegram_callback(payment_message_id=55), RESULT)

        bot.send_message.assert_awaited_once()


class TestDeliveryRouter:

    @pytest.mark.asyncio
    async def test_routes_by_platform(self):
        discord_delivery = MagicMock()
        discord_delivery.deliver = AsyncMock()
        telegram_delivery = MagicMock()
        telegram_delivery.deliver = AsyncMock()
        router = DeliveryRouter(discord_delivery, telegram_delivery)

        assert await router.deliver(_telegram_callback(), RESULT) is True
        telegram_delivery.deliver.assert_awaited_once()
        discord_delivery.deliver.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_adapter(self):
        router = DeliveryRouter(discord_delivery=None, telegram_delivery=None)
        assert await router.deliver(_discord_callback(), RESULT) is False
