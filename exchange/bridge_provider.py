"""Common contract for bridge provider clients."""
import base64
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Optional
import httpx
from loguru import logger

from models.schemas import (
    BridgeProviderName,
    Quote,
    QuoteRequest,
    StatusResult,
    SwapStatus,
    TransactionResult,
)
from services.exceptions import ProviderQuoteError, ValidationError
from utils.constants import QUOTE_EXPIRY_MS


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def quote_expiry() -> int:
    """Absolute expiry for a quote created now."""
    return now_ms() + QUOTE_EXPIRY_MS


def encode_provider_data(provider: BridgeProviderName, data: Any) -> str:
    """Wrap a provider payload into the tagged base64 blob sent to clients."""
    blob = json.dumps({"provider": provider.value, "data": data}, separators=(",", ":"))
    return base64.b64encode(blob.encode("utf-8")).decode("ascii")


def decode_provider_data(blob: str, expected: BridgeProviderName) -> Any:
    """
    Unwrap a tagged payload produced by encode_provider_data.

    Raises:
        ValidationError: if the blob is malformed or tagged for another provider
    """
    try:
        envelope = json.loads(base64.b64decode(blob, validate=True).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        raise ValidationError(f"Invalid providerData: {e}") from e

    if not isinstance(envelope, dict) or "data" not in envelope:
        raise ValidationError("Invalid providerData: missing payload")
    if envelope.get("provider") != expected.value:
        raise ValidationError(
            f"providerData was issued by {envelope.get('provider')}, not {expected.value}"
        )
    return envelope["data"]


class BridgeProvider(ABC):
    """
    One bridge integration.

    Each variant turns a generic QuoteRequest into a provider call,
    normalizes the answer into a Quote, rebuilds a submittable Solana
    transaction from the quote payload, and maps provider order status
    onto SwapStatus.
    """

    name: BridgeProviderName

    def __init__(
        self,
        api_url: str,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def _request_quote(self, method: str, url: str, **kwargs: Any) -> Any:
        """Issue a quote call, mapping every failure to ProviderQuoteError."""
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderQuoteError(self.name.value, None, str(e)) from e

        if not response.is_success:
            raise ProviderQuoteError(self.name.value, response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderQuoteError(self.name.value, response.status_code, "invalid JSON body") from e

    async def _fetch_status(self, url: str, **kwargs: Any) -> Optional[dict]:
        """
        GET a status document. Returns None on any transport, HTTP or
        decoding failure so that callers report the swap as still bridging.
        """
        try:
            response = await self.client.get(url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("{} status check failed: {}", self.name.value, e)
            return None

        if not response.is_success:
            logger.warning("{} status check returned HTTP {}", self.name.value, response.status_code)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("{} status check returned invalid JSON", self.name.value)
            return None
        return data if isinstance(data, dict) else None

    @abstractmethod
    async def get_quote(self, request: QuoteRequest) -> Quote:
        ...

    @abstractmethod
    def parse_quote(self, data: Any, input_amount: int, user_wallet: Optional[str]) -> Quote:
        """
        Normalize a raw provider quote payload.

        Raises:
            ProviderResponseShapeError: if required fields are missing
        """

    @abstractmethod
    def payload_input_amount(self, data: Any) -> Optional[int]:
        """Input amount the provider payload was issued for, None if it does not say."""

    @abstractmethod
    async def create_transaction(self, quote: Quote) -> TransactionResult:
        ...

    @abstractmethod
    async def get_status(self, order_id: str) -> StatusResult:
        ...


def map_status(raw: Any, table: dict) -> SwapStatus:
    """Case-insensitive lookup; anything unknown is still bridging."""
    return table.get(str(raw or "").lower(), SwapStatus.BRIDGING)
