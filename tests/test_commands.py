"""
Tests for commands.py -- /summarise payment links and slash command
registration.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs, urlparse

import discord
import pytest
from discord.ext import commands as discord_commands

import commands
from commands import error_report_embed, payment_prompt, register_commands, report_error, request_summary
from store import DISCORD, PendingCallbackStore


def _interaction(channel_id=222, guild_id=111):
    interaction = MagicMock()
    interaction.channel_id = channel_id
    interaction.guild_id = guild_id
    interaction.application_id = 999
    interaction.token = "interaction-token"
    interaction.user.name = "alice"
    interaction.response.send_message = AsyncMock()
    return interaction


@pytest.fixture
def settings():
    with patch.object(commands.config, "PUBLIC_BASE_URL", "https://summaries.example.com"), \
         patch.object(commands.config, "ENTRYPOINT_PRICE", "0.10"), \
         patch.object(commands.config, "PAYMENT_CURRENCY", "USDC"):
        yield


class TestPaymentPrompt:

    def test_text(self):
        assert payment_prompt("0.10", "USDC", "https://x.io/pay?callback=t") == (
            "💳 **Payment Required**\n\n"
            "To summarise this channel, please pay **$0.10 USDC** via x402.\n\n"
            "🔗 **Pay & Summarise:** [Click here](https://x.io/pay?callback=t)\n\n"
            "After payment, your summary will appear here automatically."
        )


class TestRequestSummary:

    @pytest.mark.asyncio
    async def test_issues_payment_link(self, settings):
        bot = SimpleNamespace(pending=PendingCallbackStore())
        interaction = _interaction()

        await request_summary(bot, interaction, 90)

        content = interaction.response.send_message.call_args.args[0]
        assert content.startswith("💳 **Payment Required**")
        pay_url = content.split("[Click here](", 1)[1].split(")", 1)[0]
        url = urlparse(pay_url)
        assert url.netloc == "summaries.example.com"
        query = parse_qs(url.query)
        assert query["source"] == [DISCORD]
        assert query["channelId"] == ["222"]
        assert query["serverId"] == ["111"]
        assert query["lookbackMinutes"] == ["90"]

        callback = bot.pending.get(query["callback"][0])
        assert callback.platform == DISCORD
        assert callback.chat_id == "222"
        assert callback.guild_id == "111"
        assert callback.application_id == "999"
        assert callback.interaction_token == "interaction-token"
        assert callback.username == "alice"
        assert callback.lookback_minutes == 90

    @pytest.mark.asyncio
    async def test_direct_message_has_no_server(self, settings):
        bot = SimpleNamespace(pending=PendingCallbackStore())
        interaction = _interaction(guild_id=None)

        await request_summary(bot, interaction, 60)

        content = interaction.response.send_message.call_args.args[0]
        query = parse_qs(urlparse(content.split("[Click here](", 1)[1].split(")", 1)[0]).query)
        assert "serverId" not in query
        assert bot.pending.get(query["callback"][0]).guild_id is None

    @pytest.mark.asyncio
    async def test_invalid_lookback(self, settings):
        bot = SimpleNamespace(pending=PendingCallbackStore())
        interaction = _interaction()

        await request_summary(bot, interaction, 600)

        kwargs = interaction.response.send_message.call_args.kwargs
        assert kwargs["ephemeral"] is True
        assert kwargs["embed"].title == "Invalid Lookback"
        assert kwargs["embed"].description == "Lookback may not exceed 480 minutes (8 hours)."
        assert len(bot.pending) == 0

    @pytest.mark.asyncio
    async def test_errors_propagate(self, settings):
        bot = MagicMock()
        bot.pending.create.side_effect = RuntimeError("store unavailable")

        with pytest.raises(RuntimeError, match="store unavailable"):
            await request_summary(bot, _interaction(), 60)


class TestRegisterCommands:

    def test_registers_summarise_and_help(self):
        bot = discord_commands.Bot(command_prefix="!", intents=discord.Intents.default())
        register_commands(bot)

        names = sorted(command.name for command in bot.tree.get_commands())
        assert names == ["help", "summarise"]

        summarise = bot.tree.get_command("summarise")
        assert [p.name for p in summarise.parameters] == ["minutes"]
        assert summarise.parameters[0].required is False


class TestErrorReporting:

    def test_report_embed(self):
        embed = error_report_embed("summarise", RuntimeError("store unavailable"), _interaction())

        assert embed.title == "/summarise failed"
        assert embed.description == "store unavailable"
        fields = {field.name: field.value for field in embed.fields}
        assert fields["Error Type"] == "RuntimeError"
        assert fields["Channel"] == "222"
        assert fields["Server"] == "111"

    def test_report_embed_without_message(self):
        embed = error_report_embed("help", RuntimeError())
        assert embed.description == "No message"
        assert [field.name for field in embed.fields] == ["Error Type"]

    @pytest.mark.asyncio
    async def test_report_sent_to_error_channel(self):
        channel = MagicMock()
        channel.send = AsyncMock()
        bot = MagicMock()
        bot.get_channel.return_value = channel

        with patch.object(commands.config, "ERROR_CHANNEL_ID", 555):
            await report_error(bot, "summarise", RuntimeError("boom"))

        bot.get_channel.assert_called_once_with(555)
        assert channel.send.call_args.kwargs["embed"].title == "/summarise failed"

    @pytest.mark.asyncio
    async def test_no_error_channel_configured(self):
        bot = MagicMock()
        with patch.object(commands.config, "ERROR_CHANNEL_ID", None):
            await report_error(bot, "summarise", RuntimeError("boom"))
        bot.get_channel.assert_not_called()
