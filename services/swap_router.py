"""HTTP endpoints for quoting, executing and tracking sponsored swaps."""
import asyncio
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from exchange.bridge_provider import encode_provider_data
from models.schemas import (
    BridgeProviderName,
    FeeBreakdown,
    FeeToken,
    Quote,
    QuoteRequest,
    SwapRecord,
    SwapRequest,
)
from services.exceptions import BridgeServiceError, ValidationError
from utils.constants import DEST_CHAINS, SUPPORTED_DEST_CHAIN_IDS
from utils.wallet import parse_pubkey


router = APIRouter()

QUOTE_FIELDS = ("inputToken", "inputAmount", "destChainId", "outputToken", "userWallet", "recipientAddress")
SWAP_FIELDS = QUOTE_FIELDS + ("selectedProvider", "providerData", "quotedFee", "feeToken")


def register_exception_handlers(app: FastAPI) -> None:
    """Render every service error as {"error": message} with its HTTP status."""

    @app.exception_handler(BridgeServiceError)
    async def _service_error(request: Request, exc: BridgeServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("{} {} failed: {}", request.method, request.url.path, exc.msg)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.msg})


def _get_state(request: Request, name: str) -> Any:
    """Get a service from app state."""
    service = getattr(request.app.state, name, None)
    if service is None:
        raise BridgeServiceError(f"{name} not initialized")
    return service


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as e:
        raise ValidationError(f"Invalid JSON body: {e}") from e
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _require(body: Dict[str, Any], fields: tuple) -> None:
    missing = [f for f in fields if body.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def _parse_int(value: Any, field: str, minimum: int = 0) -> int:
    """Accept ints and integer strings; reject floats and bools."""
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"Invalid {field}: {value}")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value}")
    if parsed < minimum:
        raise ValidationError(f"Invalid {field}: {value}")
    return parsed


def _parse_dest_chain(value: Any) -> int:
    chain_id = _parse_int(value, "destChainId", minimum=1)
    if chain_id not in SUPPORTED_DEST_CHAIN_IDS:
        raise ValidationError(f"Unsupported destination chain: {value}")
    return chain_id


def _fee_to_dict(fee: FeeBreakdown) -> Dict[str, Any]:
    c = fee.components
    return {
        "totalFee": str(fee.total_fee),
        "feeToken": fee.fee_token.value,
        "feeMint": fee.fee_mint,
        "components": {
            "solanaGas": str(c.solana_gas_cost),
            "solanaRent": str(c.solana_rent_cost),
            "providerFee": str(c.provider_fee),
            "markup": str(c.percentage_markup),
            "buffer": str(c.fixed_buffer),
        },
        "solPriceUsdc": str(fee.sol_price_usdc),
    }


def _quote_to_dict(quote: Quote, fee: FeeBreakdown, is_best: bool) -> Dict[str, Any]:
    return {
        "provider": quote.provider.value,
        "estimatedOutput": str(quote.estimated_output_amount),
        "minOutput": str(quote.min_output_amount),
        "estimatedTimeSeconds": quote.estimated_time_seconds,
        "providerFeeNative": str(quote.provider_fee_native),
        "fee": _fee_to_dict(fee),
        "isBest": is_best,
        "providerData": encode_provider_data(quote.provider, quote.provider_data),
        "expiresAt": quote.expires_at,
    }


def _record_to_dict(record: SwapRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "walletAddress": record.wallet_address,
        "inputToken": record.input_token,
        "inputTokenSymbol": record.input_token_symbol,
        "inputAmount": record.input_amount,
        "outputToken": record.output_token,
        "outputTokenSymbol": record.output_token_symbol,
        "sourceChain": record.source_chain,
        "destChain": record.dest_chain,
        "destChainId": record.dest_chain_id,
        "provider": record.provider.value,
        "destTxHash": record.dest_tx_hash,
        "sponsorFeePaid": record.sponsor_fee_paid,
        "feeToken": record.fee_token.value,
        "bridgeOrderId": record.bridge_order_id,
        "status": record.status.value,
        "errorMessage": record.error_message,
        "createdAt": record.created_at,
        "updatedAt": record.updated_at,
    }


@router.post("/quote")
async def quote(request: Request) -> Dict[str, Any]:
    """
    Quote every provider and price the sponsor fee for each route.

    Expected payload:
    {
        "inputToken": "<solana mint>",
        "inputAmount": "1000000000",
        "destChainId": 8453,
        "outputToken": "<evm token>",
        "userWallet": "<solana wallet>",
        "recipientAddress": "<evm address>"
    }
    """
    body = await _read_json(request)
    _require(body, QUOTE_FIELDS)

    user_wallet = str(body["userWallet"])
    parse_pubkey(user_wallet, "userWallet")
    quote_request = QuoteRequest(
        input_token=str(body["inputToken"]),
        input_amount=_parse_int(body["inputAmount"], "inputAmount", minimum=1),
        dest_chain_id=_parse_dest_chain(body["destChainId"]),
        output_token=str(body["outputToken"]),
        user_wallet=user_wallet,
        recipient_address=str(body["recipientAddress"]),
    )

    aggregator = _get_state(request, "aggregator")
    fee_calculator = _get_state(request, "fee_calculator")

    # A newer quote for the same wallet abandons this one
    comparison = await aggregator.get_comparison_quotes(quote_request, intent_key=user_wallet)

    fees: List[FeeBreakdown] = await asyncio.gather(
        *(
            fee_calculator.calculate_fee(
                q, user_wallet, quote_request.input_token, quote_request.input_amount
            )
            for q in comparison.quotes
        )
    )

    # One quote per provider, so the provider identifies the best route
    best_provider = comparison.best_quote.provider
    return {
        "quotes": [
            _quote_to_dict(q, fee, q.provider == best_provider)
            for q, fee in zip(comparison.quotes, fees)
        ]
    }


@router.post("/swap")
async def swap(request: Request) -> Dict[str, Any]:
    """
    Build the fee-payment and bridge transactions for a quoted route.

    Takes the /quote fields plus selectedProvider, providerData,
    quotedFee and feeToken. Symbols and destChain are optional.
    """
    body = await _read_json(request)
    _require(body, SWAP_FIELDS)

    try:
        provider = BridgeProviderName(str(body["selectedProvider"]))
    except ValueError:
        raise ValidationError(f"Unsupported provider: {body['selectedProvider']}")

    try:
        fee_token = FeeToken(str(body["feeToken"]))
    except ValueError:
        raise ValidationError(f"Unsupported feeToken: {body['feeToken']}")

    dest_chain_id = _parse_dest_chain(body["destChainId"])
    swap_request = SwapRequest(
        user_wallet=str(body["userWallet"]),
        input_token=str(body["inputToken"]),
        input_token_symbol=body.get("inputTokenSymbol") or "UNKNOWN",
        input_amount=_parse_int(body["inputAmount"], "inputAmount", minimum=1),
        dest_chain_id=dest_chain_id,
        dest_chain=body.get("destChain") or DEST_CHAINS[dest_chain_id],
        output_token=str(body["outputToken"]),
        output_token_symbol=body.get("outputTokenSymbol") or "UNKNOWN",
        recipient_address=str(body["recipientAddress"]),
        selected_provider=provider,
        provider_data=str(body["providerData"]),
        quoted_fee=_parse_int(body["quotedFee"], "quotedFee"),
        fee_token=fee_token,
    )

    executor = _get_state(request, "swap_executor")
    result = await executor.execute_swap(swap_request)
    return {
        "swapId": result.swap_id,
        "feePaymentTx": result.fee_payment_tx,
        "bridgeTx": result.bridge_tx,
        "bridgeOrderId": result.bridge_order_id,
        "status": result.status.value,
    }


@router.get("/swap/{swap_id}/status")
async def swap_status(swap_id: str, request: Request) -> Dict[str, Any]:
    poller = _get_state(request, "status_poller")
    result = await poller.poll_swap_status(swap_id)
    return {"status": result.status.value, "destTxHash": result.dest_tx_hash}


@router.get("/history")
async def history(request: Request, wallet: Optional[str] = None) -> Dict[str, Any]:
    """Most recent swaps for a wallet, newest first."""
    if not wallet:
        raise ValidationError("wallet query parameter is required")

    store = _get_state(request, "swap_store")
    return {"swaps": [_record_to_dict(r) for r in store.list_swaps(wallet)]}
