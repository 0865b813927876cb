"""Sponsor cost-recovery fee calculation."""
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address
from loguru import logger

from config import FeeSettings
from exchange.solana_client import SolanaClient
from models.schemas import FeeBreakdown, FeeComponents, FeeToken, Quote
from services.price_cache import PriceCache
from services.sponsor import SponsorAccount
from utils.constants import (
    SOL_NATIVE_MINT,
    SOLANA_ATA_RENT,
    SOLANA_BASE_TX_FEE,
    SOLANA_PRIORITY_FEE_ESTIMATE,
)
from utils.transfer_fee import BPS_DENOMINATOR
from utils.wallet import lamports_to_usdc, parse_pubkey

# Every swap needs two Solana transactions: the fee payment and the bridge leg
TRANSACTIONS_PER_SWAP = 2


class FeeCalculator:
    """
    Computes what the user owes the sponsor for one quote.

    The fee always covers the sponsor's estimated cost (gas, rent, provider
    fee, safety buffer) plus a proportional markup, and any conversion to
    USDC rounds up. Settlement is in USDC when the user holds enough of it,
    otherwise in SOL.
    """

    def __init__(
        self,
        solana: SolanaClient,
        sponsor: SponsorAccount,
        price_cache: PriceCache,
        settings: FeeSettings,
    ):
        self.solana = solana
        self.sponsor = sponsor
        self.price_cache = price_cache
        self.settings = settings
        self.usdc_mint = Pubkey.from_string(settings.usdc_mint)

    async def calculate_fee(
        self,
        quote: Quote,
        user_wallet: str,
        input_token: str,
        input_amount: int,
    ) -> FeeBreakdown:
        """
        Build the FeeBreakdown for a quote.

        Raises:
            PriceUnavailable, ChainReadError: on any external read failure
        """
        usdc_program = await self.solana.get_token_program_id(self.usdc_mint)

        gas_cost = TRANSACTIONS_PER_SWAP * (SOLANA_BASE_TX_FEE + SOLANA_PRIORITY_FEE_ESTIMATE)

        # The sponsor's USDC account is created on first use, at the sponsor's expense
        sponsor_ata = get_associated_token_address(self.sponsor.pubkey, self.usdc_mint, usdc_program)
        rent_cost = 0 if await self.solana.account_exists(sponsor_ata) else SOLANA_ATA_RENT

        markup = input_amount * self.settings.percentage_bps // BPS_DENOMINATOR

        components = FeeComponents(
            solana_gas_cost=gas_cost,
            solana_rent_cost=rent_cost,
            provider_fee=quote.provider_fee_native,
            percentage_markup=markup,
            fixed_buffer=self.settings.fixed_buffer_lamports,
        )
        total_cost = gas_cost + rent_cost + quote.provider_fee_native + self.settings.fixed_buffer_lamports
        total_fee_lamports = total_cost + markup

        sol_price = await self.price_cache.get_or_refresh()
        total_fee_usdc = lamports_to_usdc(total_fee_lamports, sol_price)

        # Token-2022 USDC variants withhold a fee; the user sends the gross
        usdc_transfer = total_fee_usdc
        transfer_fee = await self.solana.get_transfer_fee_config(self.usdc_mint)
        if transfer_fee is not None:
            usdc_transfer = transfer_fee.gross_for_desired_net(total_fee_usdc)

        user_usdc = await self.solana.get_token_balance(
            parse_pubkey(user_wallet, "userWallet"), self.usdc_mint, usdc_program
        )

        if user_usdc >= usdc_transfer:
            fee = FeeBreakdown(
                total_fee=total_fee_usdc,
                fee_token=FeeToken.USDC,
                fee_mint=self.settings.usdc_mint,
                components=components,
                sol_price_usdc=sol_price,
                transfer_amount=usdc_transfer,
            )
        else:
            fee = FeeBreakdown(
                total_fee=total_fee_lamports,
                fee_token=FeeToken.SOL,
                fee_mint=SOL_NATIVE_MINT,
                components=components,
                sol_price_usdc=sol_price,
                transfer_amount=total_fee_lamports,
            )

        logger.debug(
            "Fee for {} via {}: {} {} (cost {} + markup {} lamports @ {} USDC/SOL)",
            input_token[:8],
            quote.provider.value,
            fee.total_fee,
            fee.fee_token.value,
            total_cost,
            markup,
            sol_price,
        )
        return fee
