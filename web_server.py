"""
Location: web_server.py
Summary: HTTP surface of the bot. Serves a health check, the /pay link target
         that answers with an x402 payment challenge, and the two paid
         entrypoints that verify a payment, run the summary, settle, and
         optionally deliver the result to the chat that requested it.

Used by: main.py (started with the bot, stopped on shutdown)
Uses: aiohttp.web, payments.py, schemas.py, summary.SummaryOrchestrator,
      store.PendingCallbackStore, delivery.DeliveryRouter
"""

import json
import logging

from aiohttp import web
from pydantic import ValidationError

from config import ConfigurationError
from payments import (
    InvalidPaymentHeader,
    PaymentRequirements,
    PaymentSettlementError,
    PaymentVerificationError,
    build_requirements,
    decode_payment_header,
    encode_payment_response,
    payment_required_body,
)
from schemas import DiscordSummaryInput, TelegramSummaryInput, validation_issues
from store.models import DISCORD, TELEGRAM
from summary.window import WindowError
from utils.constants import (
    DISCORD_ENTRYPOINT,
    DISCORD_ENTRYPOINT_DESCRIPTION,
    TELEGRAM_ENTRYPOINT,
    TELEGRAM_ENTRYPOINT_DESCRIPTION,
)

logger = logging.getLogger(__name__)

ENTRYPOINT_PLATFORMS = {
    DISCORD_ENTRYPOINT: DISCORD,
    TELEGRAM_ENTRYPOINT: TELEGRAM,
}
SOURCE_ENTRYPOINTS = {platform: key for key, platform in ENTRYPOINT_PLATFORMS.items()}
INPUT_MODELS = {
    DISCORD_ENTRYPOINT: DiscordSummaryInput,
    TELEGRAM_ENTRYPOINT: TelegramSummaryInput,
}
DESCRIPTIONS = {
    DISCORD_ENTRYPOINT: DISCORD_ENTRYPOINT_DESCRIPTION,
    TELEGRAM_ENTRYPOINT: TELEGRAM_ENTRYPOINT_DESCRIPTION,
}

# query parameters accepted by /pay for each entrypoint
PAY_QUERY_FIELDS = {
    DISCORD_ENTRYPOINT: ("channelId", "serverId", "lookbackMinutes", "startMessageUrl", "endMessageUrl"),
    TELEGRAM_ENTRYPOINT: ("chatId", "lookbackMinutes"),
}


def error_response(code: str, message: str, status: int, **extra) -> web.Response:
    payload = {"error": {"code": code, "message": message, **extra}}
    return web.json_response(payload, status=status)


class SummaryWebServer:
    """aiohttp server exposing the paid summary entrypoints.

    Args:
        orchestrator: SummaryOrchestrator that produces results.
        facilitator: FacilitatorClient for verify/settle.
        pending: PendingCallbackStore holding chat callbacks.
        delivery: DeliveryRouter that posts results back to chats.
        base_url: Public base URL used for x402 resource URLs.
        pay_to: Receiving wallet address.
        network: x402 network name.
        price: Price per call in USDC.
        discord_client: Discord client, for the health check.
        telegram_app: Telegram Application, for the health check.
        conversation_store: Telegram message buffer, for the health check.
        host: Bind address.
        port: Bind port.
    """

    def __init__(
        self,
        orchestrator,
        facilitator,
        pending,
        delivery,
        base_url: str,
        pay_to: str,
        network: str = "base",
        price: str = "0.10",
        discord_client=None,
        telegram_app=None,
        conversation_store=None,
        host: str = "0.0.0.0",
        port: int = 8080,
    ):
        self.orchestrator = orchestrator
        self.facilitator = facilitator
        self.pending = pending
        self.delivery = delivery
        self.base_url = base_url.rstrip("/")
        self.pay_to = pay_to
        self.network = network
        self.price = price
        self.discord_client = discord_client
        self.telegram_app = telegram_app
        self.conversation_store = conversation_store
        self.host = host
        self.port = port
        self._runner = None
        self._site = None

    def resource_url(self, entrypoint: str) -> str:
        return f"{self.base_url}/entrypoints/{entrypoint}/invoke"

    def requirements_for(self, entrypoint: str) -> PaymentRequirements:
        return build_requirements(
            resource=self.resource_url(entrypoint),
            description=DESCRIPTIONS[entrypoint],
            price=self.price,
            pay_to=self.pay_to,
            network=self.network,
        )

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._health_handler)
        app.router.add_get("/pay", self._pay_handler)
        app.router.add_post("/entrypoints/{entrypoint}/invoke", self._invoke_handler)
        return app

    async def _health_handler(self, request: web.Request) -> web.Response:
        """Handle GET /health requests."""
        discord_connected = bool(self.discord_client and self.discord_client.is_ready())
        telegram_running = bool(self.telegram_app and self.telegram_app.running)
        payload = {
            "status": "healthy",
            "discord_connected": discord_connected,
            "telegram_running": telegram_running,
        }
        if discord_connected:
            payload["latency_ms"] = round(self.discord_client.latency * 1000, 2)
        if self.conversation_store is not None:
            payload["buffered_chats"] = len(self.conversation_store.chat_ids())
            payload["buffered_messages"] = self.conversation_store.total_messages()
        return web.json_response(payload, status=200)

    async def _pay_handler(self, request: web.Request) -> web.Response:
        """Handle GET /pay: validate the request and answer with the x402 challenge."""
        source = request.query.get("source", "").strip().lower()
        entrypoint = SOURCE_ENTRYPOINTS.get(source)
        if entrypoint is None:
            return error_response("invalid_source", "source must be 'discord' or 'telegram'", 400)

        raw_input = {
            name: request.query[name]
            for name in PAY_QUERY_FIELDS[entrypoint]
            if request.query.get(name)
        }
        try:
            parsed = INPUT_MODELS[entrypoint].model_validate(raw_input)
        except ValidationError as e:
            return error_response("invalid_input", "Invalid payment request", 400, issues=validation_issues(e))

        token = request.query.get("callback")
        invoke_url = self.resource_url(entrypoint)
        if token:
            callback = self.pending.get(token)
            if callback is None or callback.platform != source:
                return error_response("callback_expired", "This payment link has expired. Run the command again.", 410)
            invoke_url = f"{invoke_url}?callback={token}"

        body = payment_required_body(self.requirements_for(entrypoint))
        body["input"] = parsed.model_dump(by_alias=True, exclude_none=True)
        body["invokeUrl"] = invoke_url
        if token:
            body["callback"] = token
        return web.json_response(body, status=402)

    async def _invoke_handler(self, request: web.Request) -> web.Response:
        """Handle POST /entrypoints/{entrypoint}/invoke."""
        entrypoint = request.match_info["entrypoint"]
        if entrypoint not in ENTRYPOINT_PLATFORMS:
            return error_response("not_found", f"Unknown entrypoint: {entrypoint}", 404)

        try:
            body = await request.json() if request.can_read_body else {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            return error_response("invalid_json", "Request body must be JSON", 400)
        raw_input = body.get("input", {}) if isinstance(body, dict) else None
        if not isinstance(raw_input, dict):
            return error_response("invalid_input", "Body must be {\"input\": {...}}", 400,
                                  issues=[{"path": "input", "message": "must be an object"}])

        try:
            parsed = INPUT_MODELS[entrypoint].model_validate(raw_input)
        except ValidationError as e:
            return error_response("invalid_input", "Invalid input", 400, issues=validation_issues(e))

        requirements = self.requirements_for(entrypoint)
        header = request.headers.get("X-PAYMENT")
        if not header:
            return web.json_response(payment_required_body(requirements), status=402)

        try:
            payment = decode_payment_header(header)
            await self.facilitator.verify(payment, requirements)
        except (InvalidPaymentHeader, PaymentVerificationError) as e:
            return web.json_response(payment_required_body(requirements, error=str(e)), status=402)

        try:
            result = await self._run_summary(entrypoint, parsed)
        except WindowError as e:
            return error_response("invalid_input", str(e), 400, issues=[{"path": "input", "message": str(e)}])
        except ConfigurationError as e:
            logger.error(f"Entrypoint {entrypoint} unavailable: {e}")
            return error_response("unavailable", str(e), 503)

        try:
            settlement = await self.facilitator.settle(payment, requirements)
        except PaymentSettlementError as e:
            return web.json_response(payment_required_body(requirements, error=str(e)), status=402)

        token = request.query.get("callback")
        if token:
            await self._deliver_callback(token, entrypoint, result)

        return web.json_response(
            {"output": result.to_dict(), "model": result.model},
            status=200,
            headers={"X-PAYMENT-RESPONSE": encode_payment_response(settlement)},
        )

    async def _run_summary(self, entrypoint: str, parsed):
        if entrypoint == DISCORD_ENTRYPOINT:
            return await self.orchestrator.summarise_discord(
                channel_id=parsed.channel_id,
                guild_id=parsed.server_id,
                lookback_minutes=parsed.lookback_minutes,
                start_message_url=parsed.start_message_url,
                end_message_url=parsed.end_message_url,
            )
        return await self.orchestrator.summarise_telegram(parsed.chat_id, parsed.lookback_minutes)

    async def _deliver_callback(self, token: str, entrypoint: str, result) -> None:
        """Deliver a paid result to the chat behind ``token``, at most once."""
        callback = self.pending.take_once(token)
        if callback is None:
            logger.warning(f"Callback {token[:8]}... is unknown or expired; skipping chat delivery")
            return
        if callback.platform != ENTRYPOINT_PLATFORMS[entrypoint]:
            logger.warning(f"Callback {token[:8]}... belongs to {callback.platform}, not {entrypoint}")
            return
        try:
            await self.delivery.deliver(callback, result)
        except Exception as e:
            # paid responses are returned even when chat delivery fails
            logger.error(f"Failed to deliver summary for callback {token[:8]}...: {e}", exc_info=True)

    async def start(self) -> None:
        """Create and start the aiohttp web server as a background service."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        logger.info("Web server started on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the web server. Safe to call if it never started."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("Web server stopped")
