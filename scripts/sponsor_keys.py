#!/usr/bin/env python3
"""
Sponsor wallet helper.

Usage:
    python3 scripts/sponsor_keys.py generate
    python3 scripts/sponsor_keys.py show [--config config.yaml]
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add the repository root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from solders.keypair import Keypair

from config import load_config, require_sponsor_key
from exchange.solana_client import SolanaClient
from services.exceptions import BridgeServiceError
from services.sponsor import SponsorAccount
from utils.wallet import format_lamports, keypair_to_base58


def generate() -> int:
    keypair = Keypair()
    print("\n=== Sponsor Keypair Generated ===")
    print(f"Public Key: {keypair.pubkey()}")
    print("\nPrivate Key (add this to .env as SPONSOR_PRIVATE_KEY):")
    print(keypair_to_base58(keypair))
    print("\nFund this wallet with SOL to cover gas sponsorship costs.")
    return 0


async def show(config_path: str) -> int:
    try:
        config = load_config(config_path)
        solana = SolanaClient(rpc_url=config.get("solana", {}).get("rpc_url", "https://api.mainnet-beta.solana.com"))
        try:
            sponsor = SponsorAccount.from_private_key(require_sponsor_key(config), solana)
            balance = await sponsor.get_balance()
        finally:
            await solana.close()
    except (FileNotFoundError, BridgeServiceError) as e:
        print(f"Error: {e}")
        print("Make sure SPONSOR_PRIVATE_KEY is set; run `generate` to create one.")
        return 1

    print("\n=== Sponsor Wallet Info ===")
    print(f"Address: {sponsor.pubkey}")
    print(f"Current Balance: {format_lamports(balance):.4f} SOL")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Manage the sponsor wallet")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("generate", help="Create a new sponsor keypair")
    show_parser = subparsers.add_parser("show", help="Show the configured sponsor address and balance")
    show_parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")

    args = parser.parse_args()
    if args.command == "generate":
        return generate()
    return asyncio.run(show(args.config))


if __name__ == "__main__":
    sys.exit(main())
