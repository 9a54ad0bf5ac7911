"""
Tests for web_server.py -- health check, /pay challenge and the paid
entrypoints.

Runs the aiohttp application in-process with aiohttp's TestClient. The
orchestrator, facilitator and delivery router are mocks; the pending callback
store is real.
"""

import base64
import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
import pytz
from aiohttp.test_utils import TestClient, TestServer

from config import ConfigurationError
from payments import PaymentSettlementError, PaymentVerificationError, SettlementResult
from store import DISCORD, TELEGRAM, ConversationStore, PendingCallbackStore, StoredMessage
from summary.models import SummaryResult
from summary.window import WindowError
from web_server import SummaryWebServer

PAYMENT = {"x402Version": 1, "scheme": "exact", "network": "base", "payload": {"signature": "0xabc"}}
PAYMENT_HEADER = base64.b64encode(json.dumps(PAYMENT).encode()).decode()
DISCORD_PATH = "/entrypoints/summarise-chat/invoke"
TELEGRAM_PATH = "/entrypoints/summarise-telegram-chat/invoke"
DISCORD_INPUT = {"input": {"channelId": "222", "serverId": "111", "lookbackMinutes": 60}}
RESULT = SummaryResult(
    summary="Good morning! Here is what happened in the last 60 minutes:\n• Alice shipped it.",
    actionables=["@alice - write release notes"],
    model="gemini-test",
)


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.summarise_discord = AsyncMock(return_value=RESULT)
    mock.summarise_telegram = AsyncMock(return_value=RESULT)
    return mock


@pytest.fixture
def facilitator():
    mock = MagicMock()
    mock.verify = AsyncMock(return_value="0xpayer")
    mock.settle = AsyncMock(return_value=SettlementResult(True, "0xtx", "base", "0xpayer"))
    return mock


@pytest.fixture
def delivery():
    mock = MagicMock()
    mock.deliver = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def pending():
    return PendingCallbackStore()


@pytest.fixture
def server(orchestrator, facilitator, pending, delivery):
    return SummaryWebServer(
        orchestrator=orchestrator,
        facilitator=facilitator,
        pending=pending,
        delivery=delivery,
        base_url="https://summaries.example.com/",
        pay_to="0xPayee",
    )


@pytest_asyncio.fixture
async def client(server):
    async with TestClient(TestServer(server.build_app())) as test_client:
        yield test_client


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_without_platforms(self, client):
        response = await client.get("/health")
        assert response.status == 200
        assert await response.json() == {
            "status": "healthy",
            "discord_connected": False,
            "telegram_running": False,
        }

    @pytest.mark.asyncio
    async def test_health_with_platforms(self, server):
        server.discord_client = MagicMock()
        server.discord_client.is_ready.return_value = True
        server.discord_client.latency = 0.0421
        server.telegram_app = MagicMock(running=True)

        async with TestClient(TestServer(server.build_app())) as test_client:
            response = await test_client.get("/health")
            data = await response.json()

        assert data["discord_connected"] is True
        assert data["telegram_running"] is True
        assert data["latency_ms"] == 42.1

    @pytest.mark.asyncio
    async def test_health_reports_buffered_messages(self, server):
        store = ConversationStore()
        now = datetime.now(pytz.UTC)
        store.append(-100, StoredMessage(message_id=1, text="hi", timestamp=now))
        store.append(-100, StoredMessage(message_id=2, text="hello", timestamp=now))
        store.append(-200, StoredMessage(message_id=1, text="hey", timestamp=now))
        server.conversation_store = store

        async with TestClient(TestServer(server.build_app())) as test_client:
            response = await test_client.get("/health")
            data = await response.json()

        assert response.status == 200
        assert data["buffered_chats"] == 2
        assert data["buffered_messages"] == 3


class TestPayLink:

    @pytest.mark.asyncio
    async def test_invalid_source(self, client):
        response = await client.get("/pay", params={"source": "slack"})
        assert response.status == 400
        assert (await response.json())["error"]["code"] == "invalid_source"

    @pytest.mark.asyncio
    async def test_payment_challenge(self, client):
        response = await client.get("/pay", params={"source": "discord", "channelId": "222", "lookbackMinutes": "60"})
        body = await response.json()

        assert response.status == 402
        assert body["x402Version"] == 1
        requirement = body["accepts"][0]
        assert requirement["resource"] == "https://summaries.example.com/entrypoints/summarise-chat/invoke"
        assert requirement["maxAmountRequired"] == "100000"
        assert requirement["payTo"] == "0xPayee"
        assert body["input"] == {"channelId": "222", "lookbackMinutes": 60}
        assert body["invokeUrl"] == requirement["resource"]
        assert "callback" not in body

    @pytest.mark.asyncio
    async def test_challenge_with_live_callback(self, client, pending):
        callback = pending.create(TELEGRAM, chat_id=-100, lookback_minutes=60)
        response = await client.get("/pay", params={
            "source": "telegram", "callback": callback.token, "chatId": "-100", "lookbackMinutes": "60",
        })
        body = await response.json()

        assert response.status == 402
        assert body["callback"] == callback.token
        assert body["invokeUrl"].endswith(f"/entrypoints/summarise-telegram-chat/invoke?callback={callback.token}")
        assert body["input"] == {"chatId": "-100", "lookbackMinutes": 60}
        # the challenge does not consume the callback
        assert pending.get(callback.token) is callback

    @pytest.mark.asyncio
    async def test_unknown_callback(self, client):
        response = await client.get("/pay", params={"source": "telegram", "callback": "missing", "chatId": "-100"})
        assert response.status == 410
        assert (await response.json())["error"]["code"] == "callback_expired"

    @pytest.mark.asyncio
    async def test_callback_for_other_platform(self, client, pending):
        callback = pending.create(TELEGRAM, chat_id=-100, lookback_minutes=60)
        response = await client.get("/pay", params={
            "source": "discord", "callback": callback.token, "channelId": "222", "lookbackMinutes": "60",
        })
        assert response.status == 410

    @pytest.mark.asyncio
    async def test_invalid_input(self, client):
        response = await client.get("/pay", params={"source": "discord", "lookbackMinutes": "60"})
        body = await response.json()
        assert response.status == 400
        assert body["error"]["code"] == "invalid_input"
        assert body["error"]["issues"][0]["message"] == "channelId is required when using lookbackMinutes."


class TestInvokeValidation:

    @pytest.mark.asyncio
    async def test_unknown_entrypoint(self, client):
        response = await client.post("/entrypoints/nope/invoke", json=DISCORD_INPUT)
        assert response.status == 404

    @pytest.mark.asyncio
    async def test_invalid_json(self, client):
        response = await client.post(DISCORD_PATH, data="{not json", headers={"Content-Type": "application/json"})
        assert response.status == 400
        assert (await response.json())["error"]["code"] == "invalid_json"

    @pytest.mark.asyncio
    async def test_body_that_is_not_utf8(self, client):
        response = await client.post(DISCORD_PATH, data=b"\xff\xfe\x00{", headers={"Content-Type": "application/json"})
        assert response.status == 400
        assert (await response.json())["error"]["code"] == "invalid_json"

    @pytest.mark.asyncio
    async def test_input_must_be_an_object(self, client):
        response = await client.post(DISCORD_PATH, json={"input": [1, 2]})
        assert response.status == 400
        assert (await response.json())["error"]["issues"] == [{"path": "input", "message": "must be an object"}]

    @pytest.mark.asyncio
    async def test_invalid_input_is_rejected_before_payment(self, client, facilitator):
        response = await client.post(TELEGRAM_PATH, json={"input": {"chatId": "general"}},
                                     headers={"X-PAYMENT": PAYMENT_HEADER})
        body = await response.json()
        assert response.status == 400
        assert body["error"]["issues"][0]["path"] == "chatId"
        facilitator.verify.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_payment_header(self, client, orchestrator):
        response = await client.post(DISCORD_PATH, json=DISCORD_INPUT)
        body = await response.json()
        assert response.status == 402
        assert body["error"] == "X-PAYMENT header is required"
        assert body["accepts"][0]["description"]
        orchestrator.summarise_discord.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_payment_header(self, client, facilitator):
        response = await client.post(DISCORD_PATH, json=DISCORD_INPUT, headers={"X-PAYMENT": "!!!"})
        assert response.status == 402
        assert "base64" in (await response.json())["error"]
        facilitator.verify.assert_not_called()


class TestInvokePayment:

    @pytest.mark.asyncio
    async def test_paid_discord_summary(self, client, orchestrator, facilitator):
        response = await client.post(DISCORD_PATH, json=DISCORD_INPUT, headers={"X-PAYMENT": PAYMENT_HEADER})
        body = await response.json()

        assert response.status == 200
        assert body == {"output": RESULT.to_dict(), "model": "gemini-test"}
        settlement = json.loads(base64.b64decode(response.headers["X-PAYMENT-RESPONSE"]))
        assert settlement["success"] is True
        assert settlement["transaction"] == "0xtx"

        orchestrator.summarise_discord.assert_awaited_once_with(
            channel_id="222",
            guild_id="111",
            lookback_minutes=60,
            start_message_url=None,
            end_message_url=None,
        )
        verified_payment, requirements = facilitator.verify.call_args.args
        assert verified_payment == PAYMENT
        assert requirements.max_amount_required == "100000"
        facilitator.settle.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_paid_telegram_summary(self, client, orchestrator):
        response = await client.post(TELEGRAM_PATH, json={"input": {"chatId": -100}},
                                     headers={"X-PAYMENT": PAYMENT_HEADER})
        assert response.status == 200
        orchestrator.summarise_telegram.assert_awaited_once_with("-100", 60)

    @pytest.mark.asyncio
    async def test_verification_failure(self, client, facilitator, orchestrator):
        facilitator.verify.side_effect = PaymentVerificationError("Payment rejected: insufficient_funds")
        response = await client.post(DISCORD_PATH, json=DISCORD_INPUT, headers={"X-PAYMENT": PAYMENT_HEADER})

        assert response.status == 402
        assert (await response.json())["error"] == "Payment rejected: insufficient_funds"
        orchestrator.summarise_discord.assert_not_called()

    @pytest.mark.asyncio
    async def test_window_error_is_not_charged(self, client, facilitator, orchestrator):
        orchestrator.summarise_discord.side_effect = WindowError("Date precedes the Discord epoch (2015-01-01).")
        response = await client.post(DISCORD_PATH, json=DISCORD_INPUT, headers={"X-PAYMENT": PAYMENT_HEADER})

        assert response.status == 400
        assert (await response.json())["error"]["message"] == "Date precedes the Discord epoch (2015-01-01)."
        facilitator.settle.assert_not_called()

    @pytest.mark.asyncio
    async def test_unconfigured_platform(self, client, facilitator, orchestrator):
        orchestrator.summarise_discord.side_effect = ConfigurationError("Discord is not configured")
        response = await client.post(DISCORD_PATH, json=DISCORD_INPUT, headers={"X-PAYMENT": PAYMENT_HEADER})

        assert response.status == 503
        facilitator.settle.assert_not_called()

    @pytest.mark.asyncio
    async def test_settlement_failure(self, client, facilitator, delivery, pending):
        facilitator.settle.side_effect = PaymentSettlementError("Settlement failed: nonce_used")
        callback = pending.create(DISCORD, chat_id="222", lookback_minutes=60)
        response = await client.post(f"{DISCORD_PATH}?callback={callback.token}", json=DISCORD_INPUT,
                                     headers={"X-PAYMENT": PAYMENT_HEADER})

        assert response.status == 402
        assert (await response.json())["error"] == "Settlement failed: nonce_used"
        delivery.deliver.assert_not_called()
        assert pending.get(callback.token) is callback


class TestCallbackDelivery:

    @pytest.mark.asyncio
    async def test_result_is_delivered_once(self, client, delivery, pending):
        callback = pending.create(DISCORD, chat_id="222", lookback_minutes=60)
        url = f"{DISCORD_PATH}?callback={callback.token}"

        first = await client.post(url, json=DISCORD_INPUT, headers={"X-PAYMENT": PAYMENT_HEADER})
        second = await client.post(url, json=DISCORD_INPUT, headers={"X-PAYMENT": PAYMENT_HEADER})

        assert first.status == 200
        assert second.status == 200
        delivery.deliver.assert_awaited_once_with(callback, RESULT)
        assert pending.get(callback.token) is None

    @pytest.mark.asyncio
    async def test_delivery_failure_still_returns_result(self, client, delivery, pending):
        delivery.deliver.side_effect = RuntimeError("Discord is down")
        callback = pending.create(DISCORD, chat_id="222", lookback_minutes=60)

        response = await client.post(f"{DISCORD_PATH}?callback={callback.token}", json=DISCORD_INPUT,
                                     headers={"X-PAYMENT": PAYMENT_HEADER})

        assert response.status == 200
        assert (await response.json())["output"]["summary"] == RESULT.summary

    @pytest.mark.asyncio
    async def test_callback_for_other_platform_is_not_delivered(self, client, delivery, pending):
        callback = pending.create(TELEGRAM, chat_id=-100, lookback_minutes=60)
        response = await client.post(f"{DISCORD_PATH}?callback={callback.token}", json=DISCORD_INPUT,
                                     headers={"X-PAYMENT": PAYMENT_HEADER})

        assert response.status == 200
        delivery.deliver.assert_not_called()
