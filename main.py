"""
Main entry point for the x402 chat summariser.
Wires the Discord bot, the Telegram bot, the paid HTTP entrypoints and the
shared in-memory stores together and runs them on one event loop.
"""

import asyncio
import logging

import discord
import pytz
from discord.ext import commands

from commands import register_commands
from config import config
from delivery import DeliveryRouter, DiscordDelivery, TelegramDelivery
from discord_api import DiscordHistoryFetcher
from payments import FacilitatorClient
from store import ConversationStore, PendingCallbackStore
from summary import GeminiSummarizer, SummaryOrchestrator
from telegram_bot import TelegramSummaryBot
from web_server import SummaryWebServer

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure root logging to stdout and the log file."""
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(config.LOG_FILE)
        ]
    )
    # Polling and gateway heartbeats are noisy at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("discord.gateway").setLevel(logging.WARNING)


class SummariserBot(commands.Bot):
    """Discord bot that sells channel summaries through x402 payment links."""

    def __init__(self, pending: PendingCallbackStore):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(command_prefix='/', intents=intents)
        self.pending = pending

    async def setup_hook(self):
        """Sync slash commands."""
        logger.info("Starting bot setup...")
        try:
            await self.tree.sync()
            logger.info("Command tree synced")
        except Exception as e:
            logger.error(f"Error in setup_hook: {e}", exc_info=True)

    async def on_ready(self):
        logger.info(f'Bot is ready. Logged in as {self.user.name}')


def build_summarizer():
    if not config.GOOGLE_API_KEY:
        logger.warning("GOOGLE_API_KEY not set; summaries will use the deterministic fallback")
        return None
    return GeminiSummarizer(
        api_key=config.GOOGLE_API_KEY,
        model_id=config.GEMINI_MODEL,
        timeout=config.LLM_TIMEOUT_SECONDS,
    )


async def main() -> None:
    setup_logging()
    config.validate()

    store = ConversationStore()
    pending = PendingCallbackStore()

    discord_bot = None
    if config.DISCORD_TOKEN:
        discord_bot = SummariserBot(pending)
        register_commands(discord_bot)
    else:
        logger.info("DISCORD_TOKEN not set. Skipping Discord bot startup.")

    telegram = None
    if config.TELEGRAM_BOT_TOKEN:
        telegram = TelegramSummaryBot(
            token=config.TELEGRAM_BOT_TOKEN,
            store=store,
            pending=pending,
            base_url=config.PUBLIC_BASE_URL,
            price=config.ENTRYPOINT_PRICE,
        )
    else:
        logger.info("TELEGRAM_BOT_TOKEN not set. Skipping Telegram bot startup.")

    orchestrator = SummaryOrchestrator(
        fetcher=DiscordHistoryFetcher(discord_bot) if discord_bot else None,
        summarizer=build_summarizer(),
        store=store,
        tz=pytz.timezone(config.SUMMARY_TIMEZONE),
    )
    delivery = DeliveryRouter(
        discord_delivery=DiscordDelivery(discord_bot) if discord_bot else None,
        telegram_delivery=TelegramDelivery(telegram.bot) if telegram else None,
    )
    facilitator = FacilitatorClient(config.FACILITATOR_URL)
    server = SummaryWebServer(
        orchestrator=orchestrator,
        facilitator=facilitator,
        pending=pending,
        delivery=delivery,
        base_url=config.PUBLIC_BASE_URL,
        pay_to=config.PAY_TO,
        network=config.NETWORK,
        price=config.ENTRYPOINT_PRICE,
        discord_client=discord_bot,
        telegram_app=telegram.application if telegram else None,
        conversation_store=store,
        host=config.WEB_HOST,
        port=config.PORT,
    )

    await server.start()
    await pending.start()
    try:
        if telegram:
            await telegram.start()
        if discord_bot:
            await discord_bot.start(config.DISCORD_TOKEN)
        else:
            await asyncio.Event().wait()
    finally:
        logger.info("Shutting down...")
        if telegram:
            await telegram.stop()
        if discord_bot and not discord_bot.is_closed():
            await discord_bot.close()
        await pending.stop()
        await server.stop()
        await facilitator.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
