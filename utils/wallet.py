"""Wallet and amount helpers for Solana."""
import base64
from decimal import Decimal
from fractions import Fraction
from typing import Optional, Union
import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from services.exceptions import ValidationError


def load_keypair_from_base58(private_key: str) -> Optional[Keypair]:
    """
    Load a Keypair from a base58-encoded private key string.

    Args:
        private_key: Base58-encoded private key (58-88 characters)

    Returns:
        Keypair object or None if invalid
    """
    try:
        decoded = base58.b58decode(private_key)
        # Solana private keys are 64 bytes (32 secret + 32 public)
        if len(decoded) == 64:
            return Keypair.from_bytes(decoded)
        # Some wallets export just the 32-byte seed
        elif len(decoded) == 32:
            return Keypair.from_seed(decoded)
        else:
            return None
    except ValueError:
        return None


def keypair_to_base58(keypair: Keypair) -> str:
    return base58.b58encode(bytes(keypair)).decode("ascii")


def parse_pubkey(address: str, field: str = "address") -> Pubkey:
    """
    Parse a public key from a base58 address string.

    Raises:
        ValidationError: if the address is not a valid Solana public key
    """
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise ValidationError(f"Invalid {field}: {address}") from e


def lamports_to_usdc(lamports: int, sol_price_usdc: Union[Decimal, float, str]) -> int:
    """
    Convert lamports to USDC base units, rounding up.

    1 SOL = 1e9 lamports and USDC has 6 decimals, so
    usdc_raw = lamports * price / 1e9 * 1e6 = lamports * price / 1000.
    The division is exact rational arithmetic followed by a ceiling.
    """
    value = Fraction(lamports) * Fraction(str(sol_price_usdc)) / 1000
    return -(-value.numerator // value.denominator)


def format_lamports(lamports: int, decimals: int = 9) -> float:
    """Convert base units to a human-readable decimal amount (display only)."""
    return lamports / (10 ** decimals)


def hex_to_base64(data: str) -> str:
    """Re-encode a hex string (optional 0x prefix) as base64."""
    if data.startswith("0x"):
        data = data[2:]
    return base64.b64encode(bytes.fromhex(data)).decode("ascii")
