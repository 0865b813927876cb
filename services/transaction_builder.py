"""Solana transaction assembly for the two swap legs."""
import base64
from typing import List
from solders.compute_budget import set_compute_unit_price
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message, MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction
from spl.token.instructions import (
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)

from exchange.solana_client import SolanaClient
from models.schemas import FeeBreakdown, FeeToken
from services.exceptions import ProviderResponseShapeError
from utils.constants import SOLANA_PRIORITY_FEE_ESTIMATE, USDC_DECIMALS


def encode_transaction(transaction: VersionedTransaction) -> str:
    return base64.b64encode(bytes(transaction)).decode("ascii")


async def build_fee_payment_transaction(
    solana: SolanaClient,
    user_wallet: Pubkey,
    sponsor: Keypair,
    fee: FeeBreakdown,
) -> VersionedTransaction:
    """
    Build the fee-payment leg: the user transfers the fee to the sponsor.

    The sponsor is fee payer and signs here. The user's signature slot is
    left empty for the wallet to fill in.
    """
    sponsor_pubkey = sponsor.pubkey()
    instructions: List[Instruction] = [set_compute_unit_price(SOLANA_PRIORITY_FEE_ESTIMATE)]

    if fee.fee_token == FeeToken.SOL:
        instructions.append(
            transfer(
                TransferParams(
                    from_pubkey=user_wallet,
                    to_pubkey=sponsor_pubkey,
                    lamports=fee.transfer_amount,
                )
            )
        )
    else:
        mint = Pubkey.from_string(fee.fee_mint)
        program_id = await solana.get_token_program_id(mint)
        decimals = await solana.get_token_decimals(mint)

        user_ata = get_associated_token_address(user_wallet, mint, program_id)
        sponsor_ata = get_associated_token_address(sponsor_pubkey, mint, program_id)

        # Sponsor pays to create its own receiving account if needed
        if not await solana.account_exists(sponsor_ata):
            instructions.append(
                create_associated_token_account(sponsor_pubkey, sponsor_pubkey, mint, program_id)
            )

        instructions.append(
            transfer_checked(
                TransferCheckedParams(
                    program_id=program_id,
                    source=user_ata,
                    mint=mint,
                    dest=sponsor_ata,
                    owner=user_wallet,
                    amount=fee.transfer_amount,
                    decimals=decimals if decimals is not None else USDC_DECIMALS,
                    signers=[],
                )
            )
        )

    blockhash = await solana.get_latest_blockhash()
    message = MessageV0.try_compile(sponsor_pubkey, instructions, [], blockhash)

    # Payer is always the first account key, so its signature comes first
    sponsor_signature = sponsor.sign_message(to_bytes_versioned(message))
    signatures = [sponsor_signature] + [Signature.default()] * (message.header.num_required_signatures - 1)
    return VersionedTransaction.populate(message, signatures)


def prepare_bridge_transaction(serialized_b64: str, blockhash: Hash) -> VersionedTransaction:
    """
    Deserialize a provider's bridge leg and give it a fresh blockhash.

    Provider blockhashes are usually stale by the time the user signs, so
    the message is rebuilt and every signature slot is cleared.
    """
    try:
        transaction = VersionedTransaction.from_bytes(base64.b64decode(serialized_b64))
    except Exception as e:
        raise ProviderResponseShapeError("bridge", f"undecodable bridge transaction: {e}") from e

    old = transaction.message
    if isinstance(old, MessageV0):
        message = MessageV0(
            old.header,
            old.account_keys,
            blockhash,
            old.instructions,
            old.address_table_lookups,
        )
    else:
        message = Message.new_with_compiled_instructions(
            old.header.num_required_signatures,
            old.header.num_readonly_signed_accounts,
            old.header.num_readonly_unsigned_accounts,
            old.account_keys,
            blockhash,
            old.instructions,
        )

    return VersionedTransaction.populate(
        message, [Signature.default()] * message.header.num_required_signatures
    )
