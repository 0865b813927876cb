"""deBridge DLN client (https://dln.debridge.finance)."""
from typing import Any, Optional
import httpx
from loguru import logger

from exchange.bridge_provider import BridgeProvider, map_status, quote_expiry
from models.schemas import (
    BridgeProviderName,
    Quote,
    QuoteRequest,
    StatusResult,
    SwapStatus,
    TransactionResult,
)
from services.exceptions import ProviderResponseShapeError
from utils.constants import DEBRIDGE_FIXED_FEE_LAMPORTS, SOLANA_CHAIN_ID_DEBRIDGE
from utils.wallet import hex_to_base64

DEBRIDGE_STATUS_MAP = {
    "fulfilled": SwapStatus.COMPLETED,
    "sentunlock": SwapStatus.COMPLETED,
    "claimedunlock": SwapStatus.COMPLETED,
    "cancelled": SwapStatus.FAILED,
    "sentordercancel": SwapStatus.REFUNDED,
    "claimedordercancel": SwapStatus.REFUNDED,
    "created": SwapStatus.BRIDGING,
}

# Cost line items that are charged on the Solana side in lamports
PROVIDER_FEE_COST_TYPES = ("DlnProtocolFee", "EstimatedOperatingExpenses")

# DLN orders on Solana usually settle in 10-30s
DEBRIDGE_TIME_ESTIMATE_SECONDS = 15


class DeBridgeClient(BridgeProvider):
    """Provider B: deBridge DLN."""

    name = BridgeProviderName.DEBRIDGE

    def __init__(
        self,
        api_url: str = "https://dln.debridge.finance/v1.0",
        stats_api_url: str = "https://stats-api.dln.trade",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_url, timeout=timeout, transport=transport)
        self.stats_api_url = stats_api_url.rstrip("/")

    async def get_quote(self, request: QuoteRequest) -> Quote:
        params = {
            "srcChainId": str(SOLANA_CHAIN_ID_DEBRIDGE),
            "srcChainTokenIn": request.input_token,
            "srcChainTokenInAmount": str(request.input_amount),
            "dstChainId": str(request.dest_chain_id),
            "dstChainTokenOut": request.output_token,
            "dstChainTokenOutAmount": "auto",
            "dstChainTokenOutRecipient": request.recipient_address,
            "srcChainOrderAuthorityAddress": request.user_wallet,
            "dstChainOrderAuthorityAddress": request.recipient_address,
            "prependOperatingExpenses": "true",
        }

        data = await self._request_quote("GET", f"{self.api_url}/dln/order/create-tx", params=params)
        quote = self.parse_quote(data, request.input_amount, request.user_wallet)

        logger.info(
            "deBridge quote: {} -> {} (min {}, fee {} lamports)",
            request.input_amount,
            quote.estimated_output_amount,
            quote.min_output_amount,
            quote.provider_fee_native,
        )
        return quote

    def parse_quote(self, data: Any, input_amount: int, user_wallet: Optional[str]) -> Quote:
        """
        Normalize a create-tx response.

        Provider fee = the fixed per-order fee plus the protocol fee and
        operating expenses listed in costsDetails.
        """
        try:
            token_out = data["estimation"]["dstChainTokenOut"]
            estimated_output = int(token_out.get("recommendedAmount") or token_out["amount"])
            min_output = int(token_out.get("minAmount") or estimated_output)

            variable_fee = sum(
                int(cost.get("amountIn") or 0)
                for cost in data["estimation"].get("costsDetails") or []
                if cost.get("type") in PROVIDER_FEE_COST_TYPES
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ProviderResponseShapeError(self.name.value, f"unexpected quote response: {e}") from e

        return Quote(
            provider=self.name,
            input_amount=input_amount,
            estimated_output_amount=estimated_output,
            min_output_amount=min(min_output, estimated_output),
            provider_fee_native=DEBRIDGE_FIXED_FEE_LAMPORTS + variable_fee,
            # Not exposed in the create-tx response
            provider_fee_usd=0.0,
            estimated_time_seconds=DEBRIDGE_TIME_ESTIMATE_SECONDS,
            provider_data=data,
            expires_at=quote_expiry(),
            user_wallet=user_wallet,
        )

    def payload_input_amount(self, data: Any) -> Optional[int]:
        """
        Requested input amount. Operating expenses are prepended to
        srcChainTokenIn.amount, so they are taken back off.
        """
        try:
            token_in = data["estimation"]["srcChainTokenIn"]
            return int(token_in["amount"]) - int(token_in.get("approximateOperatingExpense") or 0)
        except (KeyError, TypeError, ValueError):
            return None

    async def create_transaction(self, quote: Quote) -> TransactionResult:
        """deBridge already serialized the transaction (hex); re-encode it as base64."""
        data = quote.provider_data if isinstance(quote.provider_data, dict) else {}
        tx_hex = (data.get("tx") or {}).get("data")
        if not tx_hex:
            raise ProviderResponseShapeError(self.name.value, "no transaction data in response")

        order_id = data.get("orderId")
        if not order_id:
            raise ProviderResponseShapeError(self.name.value, "no orderId in response")

        try:
            serialized = hex_to_base64(tx_hex)
        except ValueError as e:
            raise ProviderResponseShapeError(self.name.value, f"transaction data is not hex: {e}") from e

        return TransactionResult(serialized_transaction=serialized, order_id=order_id)

    async def get_status(self, order_id: str) -> StatusResult:
        data = await self._fetch_status(f"{self.stats_api_url}/api/Orders/{order_id}")
        if data is None:
            return StatusResult(status=SwapStatus.BRIDGING)

        raw_status = data.get("status")
        # Some stats API versions wrap enums as {"stringValue": ...}
        if isinstance(raw_status, dict):
            raw_status = raw_status.get("stringValue")

        fulfilled = data.get("fulfilledDstEventMetadata") or {}
        return StatusResult(
            status=map_status(raw_status, DEBRIDGE_STATUS_MAP),
            dest_tx_hash=fulfilled.get("transactionHash"),
        )
