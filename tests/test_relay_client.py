"""Tests for the Relay provider client."""
import base64
import json

import httpx
import pytest
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from exchange.relay_client import RELAY_NATIVE_SOL, RelayClient, extract_request_id
from models.schemas import BridgeProviderName, SwapStatus
from services.exceptions import ProviderQuoteError, ProviderResponseShapeError
from utils.constants import SOLANA_CHAIN_ID_RELAY

SYSTEM_PROGRAM = "11111111111111111111111111111111"


def relay_quote_response(user_wallet, request_id="0xreq123", fees=None):
    return {
        "steps": [
            {
                "id": "deposit",
                "kind": "transaction",
                "requestId": "0xstep",
                "items": [
                    {
                        "status": "incomplete",
                        "data": {
                            "instructions": [
                                {
                                    "programId": SYSTEM_PROGRAM,
                                    "keys": [
                                        {"pubkey": user_wallet, "isSigner": True, "isWritable": True},
                                        {"pubkey": str(Pubkey.new_unique()), "isSigner": False, "isWritable": True},
                                    ],
                                    "data": "0x02000000" + "00ca9a3b00000000",
                                }
                            ],
                            "addressLookupTableAddresses": [],
                        },
                        "check": {
                            "endpoint": f"/intents/status?requestId={request_id}" if request_id else "",
                            "method": "GET",
                        },
                    }
                ],
            }
        ],
        "fees": fees if fees is not None else {
            "relayer": {"amount": "2000000", "amountUsd": "0.30"},
        },
        "details": {
            "currencyIn": {"amount": "1000000000"},
            "currencyOut": {"amount": "150000000", "minimumAmount": "148500000"},
            "timeEstimate": 12,
        },
    }


def make_client(mock_solana, handler):
    return RelayClient(mock_solana, api_url="https://relay.test", transport=httpx.MockTransport(handler))


class TestGetQuote:

    @pytest.mark.asyncio
    async def test_normalizes_quote(self, mock_solana, quote_request, user_wallet):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=relay_quote_response(user_wallet))

        client = make_client(mock_solana, handler)
        quote = await client.get_quote(quote_request)
        await client.close()

        assert seen["path"] == "/quote"
        assert seen["body"]["originChainId"] == SOLANA_CHAIN_ID_RELAY
        assert seen["body"]["originCurrency"] == RELAY_NATIVE_SOL
        assert seen["body"]["amount"] == "1000000000"
        assert seen["body"]["tradeType"] == "EXACT_INPUT"

        assert quote.provider == BridgeProviderName.RELAY
        assert quote.estimated_output_amount == 150_000_000
        assert quote.min_output_amount == 148_500_000
        assert quote.provider_fee_native == 2_000_000
        assert quote.provider_fee_usd == pytest.approx(0.30)
        assert quote.estimated_time_seconds == 12
        assert quote.user_wallet == user_wallet

    @pytest.mark.asyncio
    async def test_fee_from_gas_and_service(self, mock_solana, quote_request, user_wallet):
        fees = {
            "relayerGas": {"amount": "1000000", "amountUsd": "0.15"},
            "relayerService": {"amount": "500000", "amountUsd": "0.07"},
        }

        def handler(request):
            return httpx.Response(200, json=relay_quote_response(user_wallet, fees=fees))

        client = make_client(mock_solana, handler)
        quote = await client.get_quote(quote_request)

        assert quote.provider_fee_native == 1_500_000
        assert quote.provider_fee_usd == pytest.approx(0.22)

    @pytest.mark.asyncio
    async def test_http_error_carries_status_and_body(self, mock_solana, quote_request):
        def handler(request):
            return httpx.Response(400, json={"message": "Amount too low"})

        client = make_client(mock_solana, handler)
        with pytest.raises(ProviderQuoteError) as exc_info:
            await client.get_quote(quote_request)

        assert exc_info.value.http_status == 400
        assert "Amount too low" in exc_info.value.body

    @pytest.mark.asyncio
    async def test_transport_error(self, mock_solana, quote_request):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = make_client(mock_solana, handler)
        with pytest.raises(ProviderQuoteError) as exc_info:
            await client.get_quote(quote_request)
        assert exc_info.value.http_status is None

    @pytest.mark.asyncio
    async def test_malformed_quote(self, mock_solana, quote_request):
        def handler(request):
            return httpx.Response(200, json={"details": {}})

        client = make_client(mock_solana, handler)
        with pytest.raises(ProviderResponseShapeError):
            await client.get_quote(quote_request)


class TestCreateTransaction:

    @pytest.mark.asyncio
    async def test_compiles_instructions(self, mock_solana, user_wallet):
        client = make_client(mock_solana, lambda r: httpx.Response(500))
        quote = client.parse_quote(relay_quote_response(user_wallet), 1_000_000_000, user_wallet)

        result = await client.create_transaction(quote)

        assert result.order_id == "0xreq123"
        tx = VersionedTransaction.from_bytes(base64.b64decode(result.serialized_transaction))
        assert str(tx.message.account_keys[0]) == user_wallet
        assert tx.message.recent_blockhash == mock_solana.get_latest_blockhash.return_value

    @pytest.mark.asyncio
    async def test_falls_back_to_step_request_id(self, mock_solana, user_wallet):
        client = make_client(mock_solana, lambda r: httpx.Response(500))
        quote = client.parse_quote(relay_quote_response(user_wallet, request_id=None), 1, user_wallet)

        result = await client.create_transaction(quote)

        assert result.order_id == "0xstep"

    @pytest.mark.asyncio
    async def test_synthesizes_order_id(self, mock_solana, user_wallet):
        data = relay_quote_response(user_wallet, request_id=None)
        del data["steps"][0]["requestId"]
        client = make_client(mock_solana, lambda r: httpx.Response(500))
        quote = client.parse_quote(data, 1, user_wallet)

        result = await client.create_transaction(quote)

        assert result.order_id.startswith("relay-")

    @pytest.mark.asyncio
    async def test_missing_steps(self, mock_solana, user_wallet):
        data = relay_quote_response(user_wallet)
        data["steps"] = []
        client = make_client(mock_solana, lambda r: httpx.Response(500))
        quote = client.parse_quote(data, 1, user_wallet)

        with pytest.raises(ProviderResponseShapeError):
            await client.create_transaction(quote)


class TestGetStatus:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("success", SwapStatus.COMPLETED),
            ("Completed", SwapStatus.COMPLETED),
            ("failure", SwapStatus.FAILED),
            ("refund", SwapStatus.REFUNDED),
            ("pending", SwapStatus.BRIDGING),
            ("something-new", SwapStatus.BRIDGING),
        ],
    )
    async def test_status_mapping(self, mock_solana, raw, expected):
        def handler(request):
            assert request.url.path == "/intents/status/v2"
            assert request.url.params["requestId"] == "0xreq"
            return httpx.Response(200, json={"status": raw, "txHashes": ["0xdest"]})

        client = make_client(mock_solana, handler)
        result = await client.get_status("0xreq")

        assert result.status == expected
        assert result.dest_tx_hash == "0xdest"

    @pytest.mark.asyncio
    async def test_http_error_is_bridging(self, mock_solana):
        client = make_client(mock_solana, lambda r: httpx.Response(500, text="oops"))
        result = await client.get_status("0xreq")
        assert result.status == SwapStatus.BRIDGING
        assert result.dest_tx_hash is None


def test_extract_request_id():
    assert extract_request_id("/intents/status?requestId=0xabc") == "0xabc"
    assert extract_request_id("/intents/status") is None
    assert extract_request_id("") is None


def test_payload_input_amount(mock_solana, user_wallet):
    client = make_client(mock_solana, lambda r: httpx.Response(500))
    assert client.payload_input_amount(relay_quote_response(user_wallet)) == 1_000_000_000
    assert client.payload_input_amount({"details": {}}) is None
