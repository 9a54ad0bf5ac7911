"""
x402 payment helpers: payment requirements, X-PAYMENT header decoding and an
asynchronous client for the facilitator service that verifies and settles
payments on our behalf. No signature checking happens locally.
"""

from typing import Optional, Dict, Any
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from urllib.parse import urlencode
import asyncio
import aiohttp
import base64
import binascii
import json
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

X402_VERSION = 1
USDC_BASE_ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
USDC_DECIMALS = 6
MAX_TIMEOUT_SECONDS = 300

class PaymentError(Exception):
    """Base exception for payment errors."""
    pass

class InvalidPaymentHeader(PaymentError):
    """Raised when the X-PAYMENT header cannot be decoded."""
    pass

class PaymentVerificationError(PaymentError):
    """Raised when the facilitator rejects or cannot verify a payment."""
    pass

class PaymentSettlementError(PaymentError):
    """Raised when the facilitator fails to settle a verified payment."""
    pass

@dataclass
class PaymentRequirements:
    """Terms a client must satisfy to pay for a resource."""
    max_amount_required: str
    resource: str
    description: str
    pay_to: str
    network: str = "base"
    asset: str = USDC_BASE_ADDRESS
    scheme: str = "exact"
    mime_type: str = "application/json"
    max_timeout_seconds: int = MAX_TIMEOUT_SECONDS
    extra: Dict[str, Any] = field(default_factory=lambda: {"name": "USD Coin", "version": "2"})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheme": self.scheme,
            "network": self.network,
            "maxAmountRequired": self.max_amount_required,
            "resource": self.resource,
            "description": self.description,
            "mimeType": self.mime_type,
            "payTo": self.pay_to,
            "maxTimeoutSeconds": self.max_timeout_seconds,
            "asset": self.asset,
            "extra": dict(self.extra),
        }

@dataclass
class SettlementResult:
    """Structured facilitator settlement response"""
    success: bool
    transaction: Optional[str] = None
    network: Optional[str] = None
    payer: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "transaction": self.transaction,
            "network": self.network,
            "payer": self.payer,
            "errorReason": self.error,
        }

def to_atomic_units(price, decimals: int = USDC_DECIMALS) -> str:
    """Convert a decimal price ("0.10") into integer token units ("100000").

    Raises:
        ValueError: If the price is not a non-negative number.
    """
    try:
        amount = Decimal(str(price))
    except InvalidOperation:
        raise ValueError(f"Invalid price: {price!r}")
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Invalid price: {price!r}")
    units = (amount * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
    return str(int(units))

def build_requirements(
    resource: str,
    description: str,
    price,
    pay_to: str,
    network: str = "base",
) -> PaymentRequirements:
    """Payment requirements for one paid entrypoint."""
    return PaymentRequirements(
        max_amount_required=to_atomic_units(price),
        resource=resource,
        description=description,
        pay_to=pay_to,
        network=network,
    )

def payment_required_body(
    requirements: PaymentRequirements,
    error: str = "X-PAYMENT header is required",
) -> Dict[str, Any]:
    """Body of an HTTP 402 response."""
    return {
        "x402Version": X402_VERSION,
        "error": error,
        "accepts": [requirements.to_dict()],
    }

def build_pay_url(base_url: str, source: str, token: str, **params) -> str:
    """Link to the /pay endpoint carrying the callback token and request parameters."""
    query = {"source": source, "callback": token}
    query.update({k: str(v) for k, v in params.items() if v is not None})
    return f"{base_url.rstrip('/')}/pay?{urlencode(query)}"

def decode_payment_header(header: str) -> Dict[str, Any]:
    """Decode a base64 JSON X-PAYMENT header.

    Raises:
        InvalidPaymentHeader: If the header is empty, not base64 or not a JSON object.
    """
    value = (header or "").strip()
    if not value:
        raise InvalidPaymentHeader("X-PAYMENT header is empty")

    padded = value + "=" * (-len(value) % 4)
    try:
        raw = base64.b64decode(padded.replace("-", "+").replace("_", "/"), validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError) as e:
        raise InvalidPaymentHeader(f"X-PAYMENT header is not valid base64 JSON: {e}")

    if not isinstance(payload, dict):
        raise InvalidPaymentHeader("X-PAYMENT header must encode a JSON object")
    return payload

def encode_payment_response(settlement: SettlementResult) -> str:
    """Base64 JSON for the X-PAYMENT-RESPONSE header."""
    data = json.dumps(settlement.to_dict(), separators=(",", ":")).encode("utf-8")
    return base64.b64encode(data).decode("ascii")

class FacilitatorClient:
    """
    Asynchronous client for an x402 facilitator.
    Verifies payment payloads and settles them on-chain.
    """

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.headers = {'Content-Type': 'application/json'}
        self._session: Optional[aiohttp.ClientSession] = None
        self.timeout = aiohttp.ClientTimeout(total=timeout, connect=10)

    async def __aenter__(self):
        """Async context manager entry."""
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit with proper cleanup."""
        await self.close()

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def _post(self, endpoint: str, payment: Dict[str, Any], requirements: PaymentRequirements) -> Dict[str, Any]:
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self.timeout)

        body = {
            "x402Version": payment.get("x402Version", X402_VERSION),
            "paymentPayload": payment,
            "paymentRequirements": requirements.to_dict(),
        }
        url = f"{self.base_url}/{endpoint}"
        async with self._session.post(url, json=body, headers=self.headers) as response:
            text = await response.text()
            if response.status >= 400:
                raise PaymentError(f"Facilitator /{endpoint} returned {response.status}: {text[:200]}")
            try:
                data = json.loads(text) if text else {}
            except json.JSONDecodeError:
                raise PaymentError(f"Facilitator /{endpoint} returned non-JSON body")
            if not isinstance(data, dict):
                raise PaymentError(f"Facilitator /{endpoint} returned unexpected body")
            return data

    async def verify(self, payment: Dict[str, Any], requirements: PaymentRequirements) -> Optional[str]:
        """Ask the facilitator whether a payment satisfies the requirements.

        Returns:
            The payer address, when reported.

        Raises:
            PaymentVerificationError: If the payment is invalid or cannot be verified.
        """
        try:
            data = await self._post("verify", payment, requirements)
        except (aiohttp.ClientError, PaymentError) as e:
            logger.error(f"Payment verification request failed: {e}")
            raise PaymentVerificationError(f"Unable to verify payment: {e}")
        except asyncio.TimeoutError:
            raise PaymentVerificationError("Payment verification timed out")

        if not data.get("isValid"):
            reason = data.get("invalidReason") or "payment rejected"
            logger.info(f"Payment rejected by facilitator: {reason}")
            raise PaymentVerificationError(f"Payment rejected: {reason}")
        return data.get("payer")

    async def settle(self, payment: Dict[str, Any], requirements: PaymentRequirements) -> SettlementResult:
        """Settle a verified payment.

        Raises:
            PaymentSettlementError: If settlement fails.
        """
        try:
            data = await self._post("settle", payment, requirements)
        except (aiohttp.ClientError, PaymentError) as e:
            logger.error(f"Payment settlement request failed: {e}")
            raise PaymentSettlementError(f"Unable to settle payment: {e}")
        except asyncio.TimeoutError:
            raise PaymentSettlementError("Payment settlement timed out")

        result = SettlementResult(
            success=bool(data.get("success")),
            transaction=data.get("transaction"),
            network=data.get("network"),
            payer=data.get("payer"),
            error=data.get("errorReason"),
        )
        if not result.success:
            raise PaymentSettlementError(f"Settlement failed: {result.error or 'unknown error'}")
        logger.info(f"Payment settled: tx={result.transaction} payer={result.payer}")
        return result
