"""Sponsored swap execution: fee leg + bridge leg."""
from loguru import logger
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from exchange.bridge_provider import BridgeProvider, decode_provider_data
from exchange.solana_client import SolanaClient
from models.schemas import FeeBreakdown, FeeToken, Quote, SwapRequest, SwapResult, SwapStatus
from services.exceptions import (
    ChainReadError,
    FeeDriftExceeded,
    ProviderResponseShapeError,
    ValidationError,
)
from services.fee_calculator import FeeCalculator
from services.quote_aggregator import QuoteAggregator
from services.sponsor import SponsorAccount
from services.swap_store import SwapStore
from services.transaction_builder import (
    build_fee_payment_transaction,
    encode_transaction,
    prepare_bridge_transaction,
)
from utils.constants import DEST_CHAINS, FEE_DRIFT_PERCENT
from utils.transfer_fee import has_dust
from utils.wallet import parse_pubkey


def exceeds_drift(quoted_fee: int, recomputed_fee: int) -> bool:
    """True when the recomputed fee is more than 10% above the quoted one."""
    return recomputed_fee * 100 > quoted_fee * FEE_DRIFT_PERCENT


class SwapExecutor:
    """Builds both legs of a sponsored swap and records it."""

    def __init__(
        self,
        aggregator: QuoteAggregator,
        fee_calculator: FeeCalculator,
        sponsor: SponsorAccount,
        solana: SolanaClient,
        store: SwapStore,
    ):
        self.aggregator = aggregator
        self.fee_calculator = fee_calculator
        self.sponsor = sponsor
        self.solana = solana
        self.store = store

    async def execute_swap(self, request: SwapRequest) -> SwapResult:
        """
        Execute a sponsored swap.

        The fee is recomputed server-side and checked against what the user
        approved, the sponsor's balance is checked, and a swap record is
        created. Then the fee-payment leg (sponsor-signed) and the bridge
        leg (fresh blockhash, unsigned) are built.

        Args:
            request: Validated swap request from the /swap endpoint

        Returns:
            SwapResult with both transactions, base64-encoded

        Raises:
            ValidationError: malformed wallet or provider payload
            FeeDriftExceeded: recomputed fee is more than 10% above quotedFee
            SponsorInsufficientBalance: sponsor cannot cover 2x the swap cost
        """
        user_pubkey = parse_pubkey(request.user_wallet, "userWallet")
        provider = self.aggregator.get_provider(request.selected_provider)
        quote = self._rebuild_quote(provider, request)

        fee = await self.fee_calculator.calculate_fee(
            quote, request.user_wallet, request.input_token, request.input_amount
        )

        recomputed = fee.amount_in(request.fee_token)
        if exceeds_drift(request.quoted_fee, recomputed):
            logger.warning(
                "Fee drift for {}: quoted {} {}, now {}",
                request.user_wallet[:8],
                request.quoted_fee,
                request.fee_token.value,
                recomputed,
            )
            raise FeeDriftExceeded(request.quoted_fee, recomputed)

        await self.sponsor.validate_solvency(fee.total_cost_lamports)

        swap_id = self.store.create_swap(
            wallet_address=request.user_wallet,
            input_token=request.input_token,
            input_amount=request.input_amount,
            output_token=request.output_token,
            dest_chain=DEST_CHAINS.get(request.dest_chain_id, request.dest_chain),
            dest_chain_id=request.dest_chain_id,
            provider=provider.name,
            sponsor_fee_paid=fee.total_fee,
            fee_token=fee.fee_token,
            input_token_symbol=request.input_token_symbol,
            output_token_symbol=request.output_token_symbol,
        )
        logger.info(
            "Swap {} created: {} {} via {} (fee {} {})",
            swap_id,
            request.input_amount,
            request.input_token_symbol,
            provider.name.value,
            fee.total_fee,
            fee.fee_token.value,
        )

        try:
            fee_tx = await build_fee_payment_transaction(
                self.solana, user_pubkey, self.sponsor.keypair, fee
            )
            bridge = await provider.create_transaction(quote)
            blockhash = await self.solana.get_latest_blockhash()
            bridge_tx = prepare_bridge_transaction(bridge.serialized_transaction, blockhash)
        except Exception as e:
            logger.error("Swap {} failed during construction: {}", swap_id, e)
            self.store.fail_swap(swap_id, str(e))
            raise

        try:
            await self._warn_on_dust(user_pubkey, fee)
        except ChainReadError as e:
            logger.warning("Swap {}: skipped dust check, balance unreadable: {}", swap_id, e)

        self.store.mark_fee_paid(swap_id, bridge.order_id)
        logger.info("Swap {} ready, {} order {}", swap_id, provider.name.value, bridge.order_id)

        return SwapResult(
            swap_id=swap_id,
            fee_payment_tx=encode_transaction(fee_tx),
            bridge_tx=encode_transaction(bridge_tx),
            bridge_order_id=bridge.order_id,
            status=SwapStatus.FEE_PAID,
        )

    def _rebuild_quote(self, provider: BridgeProvider, request: SwapRequest) -> Quote:
        """
        Re-derive the quote from the provider payload.

        Output and fee figures sent by the client are ignored; the provider
        fee is re-read from the payload with the same parser /quote used.
        The client's inputAmount must match the amount the payload was
        issued for, since the markup is taken on it.
        """
        data = decode_provider_data(request.provider_data, provider.name)
        issued_for = provider.payload_input_amount(data)
        if issued_for is not None and issued_for != request.input_amount:
            raise ValidationError(
                f"inputAmount {request.input_amount} does not match the quoted amount {issued_for}"
            )
        try:
            return provider.parse_quote(data, request.input_amount, request.user_wallet)
        except ProviderResponseShapeError as e:
            raise ValidationError(f"Invalid providerData: {e}") from e

    async def _warn_on_dust(self, user_pubkey: Pubkey, fee: FeeBreakdown) -> None:
        if fee.fee_token != FeeToken.USDC:
            return

        mint = Pubkey.from_string(fee.fee_mint)
        transfer_fee = await self.solana.get_transfer_fee_config(mint)
        if transfer_fee is None:
            return

        program_id = await self.solana.get_token_program_id(mint)
        balance = await self.solana.get_token_balance(user_pubkey, mint, program_id)
        if has_dust(balance, fee.transfer_amount, transfer_fee.basis_points):
            logger.warning(
                "Fee transfer leaves {} units of {} stranded in {} ({})",
                balance - fee.transfer_amount,
                fee.fee_mint[:8],
                str(user_pubkey)[:8],
                get_associated_token_address(user_pubkey, mint, program_id),
            )
