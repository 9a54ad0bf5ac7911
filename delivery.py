"""
Location: delivery.py
Summary: Posts a settled summary back to the chat that paid for it. Discord
         summaries go out as interaction follow-ups through a partial webhook
         (or straight to the channel when the interaction token is gone);
         Telegram summaries are sent to the chat and the payment prompt is
         edited to show the payment went through.

Used by: web_server.py (after settlement), main.py (construction)
Uses: discord.py, python-telegram-bot, utils.text_formatting.split_response
"""

import logging
import re
from typing import Optional

import discord
from telegram.error import TelegramError

from store.models import DISCORD, TELEGRAM, PendingCallback
from summary.models import SummaryResult
from utils.constants import DISCORD_MESSAGE_LIMIT, TELEGRAM_MESSAGE_LIMIT, TELEGRAM_PAYMENT_CONFIRMED
from utils.text_formatting import split_response

logger = logging.getLogger(__name__)

_PAYMENT_NOISE = [
    re.compile(r"💳\s*\*\*Payment Required\*\*[\s\S]*?automatically\.", re.IGNORECASE),
    re.compile(r"🔗\s*\*\*Pay.*?\n", re.IGNORECASE),
    re.compile(r"https?://\S*pay\S*", re.IGNORECASE),
    re.compile(r"To summarise this channel, please pay.*?via x402\.", re.IGNORECASE),
]


def strip_payment_noise(summary: str) -> str:
    """Remove payment prompts that leaked into a summary.

    Returns the original text when stripping would leave almost nothing.
    """
    cleaned = summary or ""
    for pattern in _PAYMENT_NOISE:
        cleaned = pattern.sub("", cleaned)
    cleaned = cleaned.strip()
    if len(cleaned) < 10:
        return (summary or "").strip() or "Summary generated successfully."
    return cleaned


def format_delivery_message(result: SummaryResult, markdown: bool = True) -> str:
    """Render a paid summary with its action items.

    Args:
        result: Summary to deliver.
        markdown: Use Discord markdown; Telegram gets plain text.
    """
    bold = "**" if markdown else ""
    italic = "*" if markdown else ""

    content = f"✅ {bold}Payment Confirmed{bold}\n\n{strip_payment_noise(result.summary)}\n\n"
    if result.actionables:
        items = "\n".join(f"{i}. {item}" for i, item in enumerate(result.actionables, start=1))
        content += f"{bold}Action Items{bold}\n{items}"
    else:
        content += f"{italic}No action items identified.{italic}"
    return content


class DiscordDelivery:
    """Delivers summaries to Discord.

    Attributes:
        client: Logged-in discord.py client used for webhooks and channel lookups.
    """

    def __init__(self, client: discord.Client):
        self.client = client

    async def deliver(self, callback: PendingCallback, result: SummaryResult) -> None:
        """Send the summary as follow-up messages for the original interaction."""
        chunks = split_response(format_delivery_message(result), DISCORD_MESSAGE_LIMIT)

        if callback.application_id and callback.interaction_token:
            webhook = discord.Webhook.partial(
                int(callback.application_id),
                callback.interaction_token,
                client=self.client,
            )
            try:
                for chunk in chunks:
                    await webhook.send(chunk)
                logger.info(f"Delivered summary to Discord channel {callback.chat_id} via follow-up")
                return
            except discord.NotFound:
                # interaction tokens last 15 minutes
                logger.warning(f"Interaction expired for channel {callback.chat_id}, posting to channel")

        channel = self.client.get_channel(int(callback.chat_id))
        if channel is None:
            channel = await self.client.fetch_channel(int(callback.chat_id))
        for chunk in chunks:
            await channel.send(chunk)
        logger.info(f"Delivered summary to Discord channel {callback.chat_id}")


class TelegramDelivery:
    """Delivers summaries to Telegram chats.

    Attributes:
        bot: python-telegram-bot Bot instance.
    """

    def __init__(self, bot):
        self.bot = bot

    async def deliver(self, callback: PendingCallback, result: SummaryResult) -> None:
        """Send the summary and mark the payment prompt as paid."""
        chat_id = int(callback.chat_id)
        text = format_delivery_message(result, markdown=False)

        for chunk in split_response(text, TELEGRAM_MESSAGE_LIMIT):
            await self.bot.send_message(
                chat_id=chat_id,
                text=chunk,
                message_thread_id=callback.thread_id,
            )
        logger.info(f"Delivered summary to Telegram chat {chat_id}")

        if callback.payment_message_id is not None:
            try:
                await self.bot.edit_message_text(
                    chat_id=chat_id,
                    message_id=callback.payment_message_id,
                    text=TELEGRAM_PAYMENT_CONFIRMED,
                )
            except TelegramError as e:
                logger.warning(f"Could not update payment prompt in chat {chat_id}: {e}")


class DeliveryRouter:
    """Picks the delivery adapter for a callback's platform."""

    def __init__(self, discord_delivery: Optional[DiscordDelivery] = None,
                 telegram_delivery: Optional[TelegramDelivery] = None):
        self.discord = discord_delivery
        self.telegram = telegram_delivery

    async def deliver(self, callback: PendingCallback, result: SummaryResult) -> bool:
        """Deliver a result.

        Returns:
            False when no adapter is configured for the platform.
        """
        adapter = {DISCORD: self.discord, TELEGRAM: self.telegram}.get(callback.platform)
        if adapter is None:
            logger.warning(f"No delivery configured for platform {callback.platform}")
            return False
        await adapter.deliver(callback, result)
        return True
