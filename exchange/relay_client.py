"""Relay bridge client (https://api.relay.link)."""
import base64
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse
import httpx
from loguru import logger
from solders.instruction import AccountMeta, Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from exchange.bridge_provider import BridgeProvider, map_status, now_ms, quote_expiry
from exchange.solana_client import SolanaClient
from models.schemas import (
    BridgeProviderName,
    Quote,
    QuoteRequest,
    StatusResult,
    SwapStatus,
    TransactionResult,
)
from services.exceptions import ProviderResponseShapeError
from utils.constants import SOL_NATIVE_MINT, SOLANA_CHAIN_ID_RELAY

# Relay addresses native SOL by the system program id
RELAY_NATIVE_SOL = "11111111111111111111111111111111"

RELAY_STATUS_MAP = {
    "success": SwapStatus.COMPLETED,
    "completed": SwapStatus.COMPLETED,
    "failure": SwapStatus.FAILED,
    "failed": SwapStatus.FAILED,
    "refund": SwapStatus.REFUNDED,
    "refunded": SwapStatus.REFUNDED,
    "pending": SwapStatus.BRIDGING,
    "waiting": SwapStatus.BRIDGING,
    "submitted": SwapStatus.BRIDGING,
}

DEFAULT_TIME_ESTIMATE_SECONDS = 30


def to_relay_currency(mint: str) -> str:
    return RELAY_NATIVE_SOL if mint == SOL_NATIVE_MINT else mint


def _amount(fee: Optional[Dict[str, Any]], key: str = "amount") -> str:
    return (fee or {}).get(key) or "0"


def extract_request_id(check_endpoint: str) -> Optional[str]:
    """Pull the requestId query parameter out of a status-check URL."""
    values = parse_qs(urlparse(check_endpoint).query).get("requestId")
    return values[0] if values else None


class RelayClient(BridgeProvider):
    """Provider A: Relay intents bridge."""

    name = BridgeProviderName.RELAY

    def __init__(
        self,
        solana: SolanaClient,
        api_url: str = "https://api.relay.link",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_url, timeout=timeout, transport=transport)
        self.solana = solana

    async def get_quote(self, request: QuoteRequest) -> Quote:
        body = {
            "user": request.user_wallet,
            "originChainId": SOLANA_CHAIN_ID_RELAY,
            "destinationChainId": request.dest_chain_id,
            "originCurrency": to_relay_currency(request.input_token),
            "destinationCurrency": request.output_token,
            "recipient": request.recipient_address,
            "amount": str(request.input_amount),
            "tradeType": "EXACT_INPUT",
        }
        logger.debug("Relay quote request: {}", body)

        data = await self._request_quote("POST", f"{self.api_url}/quote", json=body)
        quote = self.parse_quote(data, request.input_amount, request.user_wallet)

        logger.info(
            "Relay quote: {} -> {} (min {}, fee {} lamports)",
            request.input_amount,
            quote.estimated_output_amount,
            quote.min_output_amount,
            quote.provider_fee_native,
        )
        return quote

    def parse_quote(self, data: Any, input_amount: int, user_wallet: Optional[str]) -> Quote:
        """Normalize a Relay /quote response."""
        try:
            currency_out = data["details"]["currencyOut"]
            estimated_output = int(currency_out["amount"])
            min_output = int(currency_out.get("minimumAmount") or estimated_output)

            fees = data.get("fees") or {}
            if fees.get("relayer"):
                fee_native = int(_amount(fees["relayer"]))
                fee_usd = float(_amount(fees["relayer"], "amountUsd"))
            else:
                # relayer = relayerGas + relayerService when Relay reports it
                fee_native = int(_amount(fees.get("relayerGas"))) + int(_amount(fees.get("relayerService")))
                fee_usd = float(_amount(fees.get("relayerGas"), "amountUsd")) + float(
                    _amount(fees.get("relayerService"), "amountUsd")
                )
            time_estimate = int(data["details"].get("timeEstimate") or DEFAULT_TIME_ESTIMATE_SECONDS)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ProviderResponseShapeError(self.name.value, f"unexpected quote response: {e}") from e

        return Quote(
            provider=self.name,
            input_amount=input_amount,
            estimated_output_amount=estimated_output,
            min_output_amount=min(min_output, estimated_output),
            provider_fee_native=fee_native,
            provider_fee_usd=fee_usd,
            estimated_time_seconds=time_estimate,
            provider_data=data,
            expires_at=quote_expiry(),
            user_wallet=user_wallet,
        )

    def payload_input_amount(self, data: Any) -> Optional[int]:
        try:
            return int(data["details"]["currencyIn"]["amount"])
        except (KeyError, TypeError, ValueError):
            return None

    async def create_transaction(self, quote: Quote) -> TransactionResult:
        """
        Assemble Relay's instruction list into one v0 transaction.

        Relay returns raw instructions plus lookup table addresses rather
        than a serialized transaction, so the message is compiled here
        with the requesting wallet as payer.
        """
        data = quote.provider_data
        steps = data.get("steps") if isinstance(data, dict) else None
        tx_step = next(
            (
                s for s in steps or []
                if s.get("kind") in ("transaction", "signature") and s.get("items")
            ),
            None,
        )
        if tx_step is None:
            raise ProviderResponseShapeError(self.name.value, "no transaction step found in quote response")

        item = tx_step["items"][0]
        solana_data = item.get("data") or {}
        raw_instructions = solana_data.get("instructions") if isinstance(solana_data, dict) else None
        if not raw_instructions:
            raise ProviderResponseShapeError(self.name.value, "no instructions found in step item")

        try:
            instructions = [self._to_instruction(ix) for ix in raw_instructions]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ProviderResponseShapeError(self.name.value, f"malformed instruction: {e}") from e

        order_id = self._order_id(tx_step, item)

        payer = self._payer(quote, instructions)
        lookup_tables = []
        for address in solana_data.get("addressLookupTableAddresses") or []:
            table = await self.solana.get_address_lookup_table(Pubkey.from_string(address))
            if table is not None:
                lookup_tables.append(table)

        blockhash = await self.solana.get_latest_blockhash()
        message = MessageV0.try_compile(payer, instructions, lookup_tables, blockhash)
        transaction = VersionedTransaction.populate(
            message, [Signature.default()] * message.header.num_required_signatures
        )

        return TransactionResult(
            serialized_transaction=base64.b64encode(bytes(transaction)).decode("ascii"),
            order_id=order_id,
        )

    async def get_status(self, order_id: str) -> StatusResult:
        data = await self._fetch_status(
            f"{self.api_url}/intents/status/v2", params={"requestId": order_id}
        )
        if data is None:
            return StatusResult(status=SwapStatus.BRIDGING)

        tx_hashes = data.get("txHashes") or []
        return StatusResult(
            status=map_status(data.get("status"), RELAY_STATUS_MAP),
            dest_tx_hash=data.get("txHash") or data.get("destinationTxHash") or (tx_hashes[0] if tx_hashes else None),
        )

    @staticmethod
    def _to_instruction(raw: Dict[str, Any]) -> Instruction:
        hex_data = raw["data"]
        if hex_data.startswith("0x"):
            hex_data = hex_data[2:]
        accounts = [
            AccountMeta(Pubkey.from_string(k["pubkey"]), bool(k["isSigner"]), bool(k["isWritable"]))
            for k in raw["keys"]
        ]
        return Instruction(Pubkey.from_string(raw["programId"]), bytes.fromhex(hex_data), accounts)

    def _order_id(self, step: Dict[str, Any], item: Dict[str, Any]) -> str:
        check_endpoint = (item.get("check") or {}).get("endpoint") or ""
        order_id = extract_request_id(check_endpoint) or step.get("requestId")
        if order_id:
            return order_id

        # Not unique under concurrency; status polling for this id will stay at bridging
        fallback = f"relay-{now_ms()}"
        logger.warning("Relay: no requestId in quote payload, using fallback order id {}", fallback)
        return fallback

    def _payer(self, quote: Quote, instructions: List[Instruction]) -> Pubkey:
        if quote.user_wallet:
            return Pubkey.from_string(quote.user_wallet)

        for account in instructions[0].accounts:
            if account.is_signer:
                return account.pubkey
        raise ProviderResponseShapeError(self.name.value, "could not determine user key from instructions")
