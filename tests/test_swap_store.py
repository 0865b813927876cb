"""Tests for SQLite swap persistence."""
import pytest

from models.schemas import BridgeProviderName, FeeToken, SwapStatus
from services.swap_store import SwapStore


@pytest.fixture
def store(tmp_path):
    return SwapStore(db_path=str(tmp_path / "swaps.db"))


def create(store, wallet="wallet-a", **overrides):
    kwargs = dict(
        wallet_address=wallet,
        input_token="So11111111111111111111111111111111111111112",
        input_amount=1_000_000_000,
        output_token="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        dest_chain="base",
        dest_chain_id=8453,
        provider=BridgeProviderName.RELAY,
        sponsor_fee_paid=2_416_500,
        fee_token=FeeToken.USDC,
        input_token_symbol="SOL",
        output_token_symbol="USDC",
    )
    kwargs.update(overrides)
    return store.create_swap(**kwargs)


def test_create_and_get(store):
    swap_id = create(store)
    record = store.get_swap(swap_id)

    assert record.status == SwapStatus.PENDING
    assert record.wallet_address == "wallet-a"
    assert record.input_amount == "1000000000"
    assert record.sponsor_fee_paid == "2416500"
    assert record.source_chain == "solana"
    assert record.dest_chain == "base"
    assert record.provider == BridgeProviderName.RELAY
    assert record.bridge_order_id is None


def test_get_unknown(store):
    assert store.get_swap("missing") is None


def test_mark_fee_paid(store):
    swap_id = create(store)
    store.mark_fee_paid(swap_id, "0xorder")

    record = store.get_swap(swap_id)
    assert record.status == SwapStatus.FEE_PAID
    assert record.bridge_order_id == "0xorder"


def test_fail_swap(store):
    swap_id = create(store)
    store.fail_swap(swap_id, "provider exploded")

    record = store.get_swap(swap_id)
    assert record.status == SwapStatus.FAILED
    assert record.error_message == "provider exploded"


def test_terminal_status_is_final(store):
    swap_id = create(store)
    store.mark_fee_paid(swap_id, "0xorder")

    assert store.update_status(swap_id, SwapStatus.COMPLETED, "0xdest") is True
    assert store.update_status(swap_id, SwapStatus.BRIDGING) is False
    store.fail_swap(swap_id, "late failure")

    record = store.get_swap(swap_id)
    assert record.status == SwapStatus.COMPLETED
    assert record.dest_tx_hash == "0xdest"
    assert record.error_message is None


def test_update_keeps_existing_hash(store):
    swap_id = create(store)
    store.update_status(swap_id, SwapStatus.BRIDGING, "0xdest")
    store.update_status(swap_id, SwapStatus.BRIDGING, None)

    assert store.get_swap(swap_id).dest_tx_hash == "0xdest"


def test_history_newest_first_and_limited(store):
    ids = [create(store) for _ in range(55)]
    create(store, wallet="wallet-b")

    history = store.list_swaps("wallet-a")

    assert len(history) == 50
    assert [r.id for r in history] == list(reversed(ids))[:50]
    assert all(r.wallet_address == "wallet-a" for r in history)
