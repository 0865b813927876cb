"""Integer math for Token-2022 transfer fees (proportional, capped)."""
from dataclasses import dataclass
from typing import Tuple

BPS_DENOMINATOR = 10_000

# Leftover balances below this many base units cannot be swept economically
DUST_THRESHOLD = 1_000


@dataclass(frozen=True)
class TransferFeeConfig:
    """Active transfer fee of a Token-2022 mint."""
    basis_points: int
    maximum_fee: int

    def net_after_fee(self, amount: int) -> Tuple[int, int]:
        return net_after_fee(amount, self.basis_points, self.maximum_fee)

    def gross_for_desired_net(self, desired_net: int) -> int:
        return gross_for_desired_net(desired_net, self.basis_points, self.maximum_fee)


def net_after_fee(amount: int, fee_bps: int, maximum_fee: int) -> Tuple[int, int]:
    """
    Amount received after the mint withholds its transfer fee.

    fee = min(ceil(amount * bps / 10000), maximum_fee)

    Returns:
        (net_amount, fee_amount)
    """
    if fee_bps == 0:
        return amount, 0

    raw_fee = -(-amount * fee_bps // BPS_DENOMINATOR)
    fee = min(raw_fee, maximum_fee)
    return amount - fee, fee


def gross_for_desired_net(desired_net: int, fee_bps: int, maximum_fee: int) -> int:
    """
    Smallest gross amount whose net after fee is at least desired_net.

    Inverse of net_after_fee. Once the capped fee is reached, the cap
    dominates and the answer is simply desired_net + maximum_fee.
    """
    if fee_bps == 0:
        return desired_net

    denominator = BPS_DENOMINATOR - fee_bps
    gross = -(-desired_net * BPS_DENOMINATOR // denominator)

    _, fee = net_after_fee(gross, fee_bps, maximum_fee)
    if fee >= maximum_fee:
        return desired_net + maximum_fee

    return gross


def has_dust(balance: int, transfer_amount: int, fee_bps: int) -> bool:
    """True if the transfer strands an un-sweepable residual balance."""
    if fee_bps == 0:
        return False
    if transfer_amount >= balance:
        return False

    remainder = balance - transfer_amount
    return 0 < remainder < DUST_THRESHOLD
