"""Tests for Token-2022 transfer fee math and mint parsing."""
import struct

import pytest

from exchange.solana_client import parse_transfer_fee_config
from utils.transfer_fee import (
    TransferFeeConfig,
    gross_for_desired_net,
    has_dust,
    net_after_fee,
)


class TestNetAfterFee:

    @pytest.mark.parametrize("amount", [0, 1, 999, 1_000_000, 10**18])
    def test_zero_bps_is_identity(self, amount):
        assert net_after_fee(amount, 0, 12345) == (amount, 0)

    def test_one_percent(self):
        assert net_after_fee(1_000_000, 100, 1_000_000) == (990_000, 10_000)

    def test_fee_rounds_up(self):
        # 101 * 100 / 10000 = 1.01 -> 2
        assert net_after_fee(101, 100, 1_000) == (99, 2)

    def test_fee_is_capped(self):
        assert net_after_fee(1_000_000, 100, 500) == (999_500, 500)


class TestGrossForDesiredNet:

    def test_zero_bps(self):
        assert gross_for_desired_net(1_000_000, 0, 100) == 1_000_000

    def test_cap_dominates(self):
        assert gross_for_desired_net(99_900_000, 500, 100_000) == 100_000_000

    def test_proportional_branch(self):
        # ceil(2_416_500 * 10000 / 9900) = 2_440_910, fee 24_410 below the cap
        assert gross_for_desired_net(2_416_500, 100, 1_000_000) == 2_440_910

    @pytest.mark.parametrize("bps", [1, 7, 50, 100, 333, 500])
    @pytest.mark.parametrize("cap", [1, 1_000, 250_000, 10**12])
    def test_net_of_gross_covers_desired(self, bps, cap):
        for desired in (1, 999, 10_000, 1_234_567, 99_900_000):
            gross = gross_for_desired_net(desired, bps, cap)
            net, _ = net_after_fee(gross, bps, cap)
            assert net >= desired

    def test_config_object_delegates(self):
        config = TransferFeeConfig(basis_points=100, maximum_fee=1_000_000)
        assert config.net_after_fee(1_000_000) == (990_000, 10_000)
        assert config.gross_for_desired_net(99_000) == 100_000


class TestHasDust:

    def test_full_balance_transfer_is_clean(self):
        assert has_dust(1_000_000, 1_000_000, 100) is False

    def test_small_remainder_is_dust(self):
        assert has_dust(1_000_000, 999_500, 100) is True

    def test_large_remainder_is_fine(self):
        assert has_dust(1_000_000, 500_000, 100) is False

    def test_zero_bps_never_flags(self):
        assert has_dust(1_000_000, 999_500, 0) is False


def _mint_with_transfer_fee(older=(0, 5_000, 100), newer=(10, 7_000, 200)) -> bytes:
    value = bytes(72) + struct.pack("<QQH", *older) + struct.pack("<QQH", *newer)
    return bytes(165) + bytes([1]) + struct.pack("<HH", 1, len(value)) + value


class TestParseTransferFeeConfig:

    def test_older_fee_before_newer_epoch(self):
        config = parse_transfer_fee_config(_mint_with_transfer_fee(), epoch=5)
        assert config == TransferFeeConfig(basis_points=100, maximum_fee=5_000)

    def test_newer_fee_from_its_epoch(self):
        config = parse_transfer_fee_config(_mint_with_transfer_fee(), epoch=10)
        assert config == TransferFeeConfig(basis_points=200, maximum_fee=7_000)

    def test_plain_mint_has_no_fee(self):
        assert parse_transfer_fee_config(bytes(82), epoch=1) is None

    def test_other_extensions_are_skipped(self):
        other = struct.pack("<HH", 6, 2) + b"\x00\x00"
        data = bytearray(_mint_with_transfer_fee())
        data[166:166] = other
        config = parse_transfer_fee_config(bytes(data), epoch=0)
        assert config == TransferFeeConfig(basis_points=100, maximum_fee=5_000)
