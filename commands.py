"""
Location: commands.py
Summary: Slash command registration and handlers for the Discord bot.
         /summarise issues an x402 payment link tied to a pending callback so
         the paid summary lands back in the channel; /help explains usage.
         Also holds the global app command error handler.

Used by: main.py calls register_commands(bot) after creating the SummariserBot instance.
Uses: utils/text_formatting.py (create_embed), summary/window.py (validate_lookback),
      store/pending.py (via bot.pending).
"""

import asyncio
import logging
from datetime import datetime, timezone

import discord
from discord import app_commands

from config import config
from payments import build_pay_url
from store.models import DISCORD
from summary.window import DEFAULT_LOOKBACK_MINUTES, MAX_LOOKBACK_MINUTES, LookbackError, validate_lookback
from utils.constants import HELP_TEXT
from utils.decorators import with_error_handling
from utils.text_formatting import create_embed

logger = logging.getLogger(__name__)


def payment_prompt(price: str, currency: str, pay_url: str) -> str:
    return (
        "💳 **Payment Required**\n\n"
        f"To summarise this channel, please pay **${price} {currency}** via x402.\n\n"
        f"🔗 **Pay & Summarise:** [Click here]({pay_url})\n\n"
        "After payment, your summary will appear here automatically."
    )


def error_report_embed(command_name: str, error: Exception, interaction: discord.Interaction | None = None) -> discord.Embed:
    """Embed describing a failed command for the error channel."""
    embed = discord.Embed(
        title=f"/{command_name} failed",
        description=str(error)[:1024] or "No message",
        color=discord.Color.red(),
        timestamp=datetime.now(timezone.utc)
    )
    embed.add_field(name="Error Type", value=type(error).__name__, inline=True)
    if interaction is not None:
        embed.add_field(name="Channel", value=str(interaction.channel_id), inline=True)
        if interaction.guild_id:
            embed.add_field(name="Server", value=str(interaction.guild_id), inline=True)
        embed.add_field(name="Requested by", value=f"{interaction.user} ({interaction.user.id})", inline=False)
    return embed


async def report_error(bot, command_name: str, error: Exception, interaction: discord.Interaction | None = None) -> None:
    """Send an error report to ERROR_CHANNEL_ID, if one is configured.

    Runs as a background task, so failures are only logged.
    """
    if not config.ERROR_CHANNEL_ID:
        return
    try:
        channel = bot.get_channel(config.ERROR_CHANNEL_ID) or await bot.fetch_channel(config.ERROR_CHANNEL_ID)
        await channel.send(embed=error_report_embed(command_name, error, interaction))
    except discord.HTTPException as e:
        logger.warning(f"Could not report /{command_name} error to channel {config.ERROR_CHANNEL_ID}: {e}")


async def _reply_ephemeral(interaction: discord.Interaction, embed: discord.Embed) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=True)


@with_error_handling
async def request_summary(bot, interaction: discord.Interaction, minutes: int) -> None:
    """Validate the lookback, register a pending callback and post the payment link."""
    try:
        lookback = validate_lookback(minutes, MAX_LOOKBACK_MINUTES)
    except LookbackError as e:
        error_embed = create_embed(
            title="Invalid Lookback",
            description=str(e),
            color=discord.Color.red()
        )
        await interaction.response.send_message(embed=error_embed, ephemeral=True)
        return

    channel_id = str(interaction.channel_id)
    guild_id = str(interaction.guild_id) if interaction.guild_id else None

    callback = bot.pending.create(
        DISCORD,
        chat_id=channel_id,
        lookback_minutes=lookback,
        guild_id=guild_id,
        application_id=str(interaction.application_id),
        interaction_token=interaction.token,
        username=interaction.user.name,
    )
    pay_url = build_pay_url(
        config.PUBLIC_BASE_URL,
        DISCORD,
        callback.token,
        channelId=channel_id,
        serverId=guild_id,
        lookbackMinutes=lookback,
    )

    await interaction.response.send_message(
        payment_prompt(config.ENTRYPOINT_PRICE, config.PAYMENT_CURRENCY, pay_url)
    )
    logger.info(
        f"Issued payment link for {lookback} min summary of channel {channel_id} "
        f"requested by {interaction.user.name}"
    )


def register_commands(bot) -> None:
    """Register all slash commands on the bot's command tree.

    Separated from bot construction so that module-level import does not
    trigger side effects. Called once from main().

    Args:
        bot: The SummariserBot instance to register commands on.
    """

    @bot.tree.command(name="summarise", description="Summarise recent messages in this channel (paid via x402)")
    @app_commands.checks.cooldown(1, 30)
    @app_commands.describe(minutes=f"How many minutes to look back (1-{MAX_LOOKBACK_MINUTES}, default {DEFAULT_LOOKBACK_MINUTES})")
    async def summarise_command(interaction: discord.Interaction, minutes: int = DEFAULT_LOOKBACK_MINUTES):
        """Command handler for /summarise"""
        await request_summary(bot, interaction, minutes)

    @bot.tree.command(name="help", description="How to use the summariser")
    async def help_command(interaction: discord.Interaction):
        """Command handler for /help"""
        embed = create_embed(
            title="Chat Summariser",
            description=f"{HELP_TEXT}\n\nPrice: **${config.ENTRYPOINT_PRICE} {config.PAYMENT_CURRENCY}** per summary.",
            color=discord.Color.blue()
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @bot.tree.error
    async def on_app_command_error(
        interaction: discord.Interaction,
        error: app_commands.AppCommandError
    ):
        """Answer failed slash commands.

        Cooldowns tell the user when to retry. Anything else is logged,
        reported to the error channel and answered with a generic embed.
        """
        if isinstance(error, app_commands.CommandOnCooldown):
            await _reply_ephemeral(interaction, create_embed(
                title="Slow Down",
                description=f"You requested a summary moments ago. Try again in **{error.retry_after:.0f}** seconds.",
                color=discord.Color.orange()
            ))
            return

        original = getattr(error, "original", error)
        command_name = interaction.command.name if interaction.command else "unknown"
        logger.error(f"/{command_name} failed in channel {interaction.channel_id}: {original}", exc_info=original)
        asyncio.create_task(report_error(bot, command_name, original, interaction))

        try:
            await _reply_ephemeral(interaction, create_embed(
                title="Error",
                description="Something went wrong while preparing your summary request. Please try again.",
                color=discord.Color.red()
            ))
        except discord.HTTPException as e:
            logger.error(f"Could not send error response for /{command_name}: {e}")
