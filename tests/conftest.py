"""Shared fixtures for the sponsored bridge tests."""
import base64
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction
from spl.token.constants import TOKEN_PROGRAM_ID

from exchange.bridge_provider import quote_expiry
from models.schemas import (
    BridgeProviderName,
    FeeBreakdown,
    FeeComponents,
    FeeToken,
    Quote,
    QuoteRequest,
)
from utils.constants import SOL_NATIVE_MINT, USDC_MINT_DEFAULT

EVM_RECIPIENT = "0x50ac5CFcc81BB0872e85255D7079F8a529345D16"
BASE_USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


@pytest.fixture
def user_keypair():
    return Keypair()


@pytest.fixture
def user_wallet(user_keypair):
    return str(user_keypair.pubkey())


@pytest.fixture
def quote_request(user_wallet):
    return QuoteRequest(
        input_token=SOL_NATIVE_MINT,
        input_amount=1_000_000_000,
        dest_chain_id=8453,
        output_token=BASE_USDC,
        user_wallet=user_wallet,
        recipient_address=EVM_RECIPIENT,
    )


@pytest.fixture
def make_quote():
    def _make(
        provider=BridgeProviderName.RELAY,
        estimated_output=150_000_000,
        min_output=None,
        provider_fee=1_000_000,
        provider_data=None,
        user_wallet=None,
    ):
        return Quote(
            provider=provider,
            input_amount=1_000_000_000,
            estimated_output_amount=estimated_output,
            min_output_amount=estimated_output if min_output is None else min_output,
            provider_fee_native=provider_fee,
            estimated_time_seconds=30,
            provider_data=provider_data if provider_data is not None else {"id": provider.value},
            expires_at=quote_expiry(),
            user_wallet=user_wallet,
        )
    return _make


@pytest.fixture
def make_fee():
    """FeeBreakdown with gas 110_000, no rent, buffer 10_000_000 (cost 11_110_000 + markup)."""
    def _make(
        fee_token=FeeToken.USDC,
        total_fee=None,
        provider_fee=1_000_000,
        markup=5_000_000,
        sol_price=Decimal("150"),
        transfer_amount=None,
    ):
        components = FeeComponents(
            solana_gas_cost=110_000,
            solana_rent_cost=0,
            provider_fee=provider_fee,
            percentage_markup=markup,
            fixed_buffer=10_000_000,
        )
        lamports = 110_000 + provider_fee + 10_000_000 + markup
        if total_fee is None:
            total_fee = lamports if fee_token == FeeToken.SOL else lamports * int(sol_price) // 1000
        return FeeBreakdown(
            total_fee=total_fee,
            fee_token=fee_token,
            fee_mint=SOL_NATIVE_MINT if fee_token == FeeToken.SOL else USDC_MINT_DEFAULT,
            components=components,
            sol_price_usdc=sol_price,
            transfer_amount=total_fee if transfer_amount is None else transfer_amount,
        )
    return _make


@pytest.fixture
def mock_solana():
    """SolanaClient double: plain SPL USDC, all accounts present, rich balances."""
    solana = MagicMock()
    solana.get_balance = AsyncMock(return_value=10 * 10**9)
    solana.get_token_balance = AsyncMock(return_value=100_000_000)
    solana.get_token_program_id = AsyncMock(return_value=TOKEN_PROGRAM_ID)
    solana.get_token_decimals = AsyncMock(return_value=6)
    solana.account_exists = AsyncMock(return_value=True)
    solana.get_transfer_fee_config = AsyncMock(return_value=None)
    solana.get_latest_blockhash = AsyncMock(return_value=Hash.new_unique())
    solana.get_address_lookup_table = AsyncMock(return_value=None)
    return solana


@pytest.fixture
def serialized_bridge_tx(user_keypair):
    """A provider-style unsigned bridge transaction with a stale blockhash, base64."""
    ix = transfer(
        TransferParams(
            from_pubkey=user_keypair.pubkey(),
            to_pubkey=Pubkey.new_unique(),
            lamports=1_000_000_000,
        )
    )
    message = MessageV0.try_compile(user_keypair.pubkey(), [ix], [], Hash.default())
    tx = VersionedTransaction.populate(message, [Signature.default()])
    return base64.b64encode(bytes(tx)).decode("ascii")
