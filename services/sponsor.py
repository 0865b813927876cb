"""Sponsor wallet: pays Solana gas for both legs and collects the user's fee."""
from loguru import logger
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from exchange.solana_client import SolanaClient
from services.exceptions import ConfigError, SponsorInsufficientBalance
from utils.constants import SOLVENCY_MULTIPLIER
from utils.wallet import load_keypair_from_base58


class SponsorAccount:
    """Explicitly constructed sponsor identity, shared by the services."""

    def __init__(self, keypair: Keypair, solana: SolanaClient):
        self.keypair = keypair
        self.solana = solana

    @classmethod
    def from_private_key(cls, private_key: str, solana: SolanaClient) -> "SponsorAccount":
        keypair = load_keypair_from_base58(private_key)
        if keypair is None:
            raise ConfigError("Invalid sponsor private key: expected base58 64-byte keypair or 32-byte seed")
        return cls(keypair, solana)

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    async def get_balance(self) -> int:
        return await self.solana.get_balance(self.pubkey)

    async def validate_solvency(self, estimated_cost_lamports: int) -> int:
        """
        Require a 2x margin over the estimated cost of one swap.

        There is no reservation across concurrent swaps; the margin is the
        only protection against overcommitting the sponsor.

        Returns:
            Current sponsor balance in lamports
        """
        balance = await self.get_balance()
        required = estimated_cost_lamports * SOLVENCY_MULTIPLIER
        if balance < required:
            logger.error(
                "Sponsor {} balance {} below required {} lamports",
                str(self.pubkey)[:16] + "...",
                balance,
                required,
            )
            raise SponsorInsufficientBalance(balance, required)
        return balance
