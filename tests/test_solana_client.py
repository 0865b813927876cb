"""Tests for the Solana RPC wrapper's token reads."""
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

from exchange.solana_client import SolanaClient
from services.exceptions import ChainReadError


def value(v):
    return SimpleNamespace(value=v)


@pytest.fixture
def client():
    solana = SolanaClient("http://rpc.test")
    solana.client = AsyncMock()
    return solana


class TestTokenBalance:
    @pytest.mark.asyncio
    async def test_reads_ata_balance(self, client):
        owner, mint = Pubkey.new_unique(), Pubkey.new_unique()
        ata = get_associated_token_address(owner, mint, TOKEN_PROGRAM_ID)
        client.client.get_token_accounts_by_owner.return_value = value(
            [SimpleNamespace(pubkey=Pubkey.new_unique()), SimpleNamespace(pubkey=ata)]
        )
        client.client.get_token_account_balance.return_value = value(SimpleNamespace(amount="2500000"))

        assert await client.get_token_balance(owner, mint, TOKEN_PROGRAM_ID) == 2_500_000
        client.client.get_token_account_balance.assert_awaited_once_with(ata)

    @pytest.mark.asyncio
    async def test_missing_ata_is_zero(self, client):
        client.client.get_token_accounts_by_owner.return_value = value([])

        balance = await client.get_token_balance(Pubkey.new_unique(), Pubkey.new_unique(), TOKEN_PROGRAM_ID)

        assert balance == 0
        client.client.get_token_account_balance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rpc_failure(self, client):
        client.client.get_token_accounts_by_owner.side_effect = OSError("connection reset")
        with pytest.raises(ChainReadError):
            await client.get_token_balance(Pubkey.new_unique(), Pubkey.new_unique(), TOKEN_PROGRAM_ID)


class TestMintInfo:
    @pytest.mark.asyncio
    async def test_decimals_from_token_supply(self, client):
        mint = Pubkey.new_unique()
        client.client.get_account_info.return_value = value(
            SimpleNamespace(owner=TOKEN_2022_PROGRAM_ID, data=b"\x00" * 82)
        )
        client.client.get_token_supply.return_value = value(SimpleNamespace(decimals=6))

        assert await client.get_token_decimals(mint) == 6
        assert await client.get_token_program_id(mint) == TOKEN_2022_PROGRAM_ID
        client.client.get_account_info.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_mint(self, client):
        client.client.get_account_info.return_value = value(None)
        with pytest.raises(ChainReadError):
            await client.get_token_decimals(Pubkey.new_unique())

    @pytest.mark.asyncio
    async def test_supply_failure(self, client):
        client.client.get_account_info.return_value = value(
            SimpleNamespace(owner=TOKEN_PROGRAM_ID, data=b"\x00" * 82)
        )
        client.client.get_token_supply.side_effect = OSError("timeout")
        with pytest.raises(ChainReadError):
            await client.get_token_decimals(Pubkey.new_unique())
