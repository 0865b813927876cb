"""Pydantic models for the sponsored bridge service."""
from decimal import Decimal
from enum import Enum
from typing import Optional, Any, List
from pydantic import BaseModel, ConfigDict, Field, model_validator

from utils.wallet import lamports_to_usdc


class BridgeProviderName(str, Enum):
    """Closed set of supported bridge providers."""
    RELAY = "relay"
    DEBRIDGE = "debridge"


class SwapStatus(str, Enum):
    """Swap lifecycle: pending -> fee_paid -> tx_submitted -> bridging -> terminal."""
    PENDING = "pending"
    FEE_PAID = "fee_paid"
    TX_SUBMITTED = "tx_submitted"
    BRIDGING = "bridging"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({SwapStatus.COMPLETED, SwapStatus.FAILED, SwapStatus.REFUNDED})


class FeeToken(str, Enum):
    """Token the sponsor fee is settled in."""
    USDC = "USDC"
    SOL = "SOL"


class QuoteRequest(BaseModel):
    """Generic quote request, built once per /quote call."""
    model_config = ConfigDict(frozen=True)

    input_token: str  # Solana mint
    input_amount: int  # Smallest unit of the input token
    dest_chain_id: int
    output_token: str  # EVM token address
    user_wallet: str  # Solana wallet
    recipient_address: str  # EVM recipient


class Quote(BaseModel):
    """Provider-normalized quote. Read-only once created."""
    provider: BridgeProviderName
    input_amount: int
    estimated_output_amount: int
    min_output_amount: int  # Slippage floor
    provider_fee_native: int  # Lamports
    provider_fee_usd: float = 0.0
    estimated_time_seconds: int
    provider_data: Any = None  # Opaque, replayed verbatim to create_transaction
    expires_at: int  # Epoch milliseconds
    user_wallet: Optional[str] = None

    @model_validator(mode="after")
    def _check_output_floor(self) -> "Quote":
        if self.min_output_amount > self.estimated_output_amount:
            raise ValueError("min_output_amount exceeds estimated_output_amount")
        return self


class TransactionResult(BaseModel):
    """Bridge leg returned by a provider."""
    serialized_transaction: str  # Base64 VersionedTransaction
    order_id: str


class StatusResult(BaseModel):
    status: SwapStatus
    dest_tx_hash: Optional[str] = None


class FeeComponents(BaseModel):
    """Cost components, all in lamports regardless of settlement token."""
    solana_gas_cost: int
    solana_rent_cost: int
    provider_fee: int
    percentage_markup: int
    fixed_buffer: int


class FeeBreakdown(BaseModel):
    """What the user pays the sponsor, and why."""
    total_fee: int  # Settlement token smallest unit
    fee_token: FeeToken
    fee_mint: str
    components: FeeComponents
    sol_price_usdc: Decimal  # 1 SOL = X USDC
    transfer_amount: int  # Gross sent by the user so the sponsor nets total_fee

    @property
    def total_cost_lamports(self) -> int:
        """Exact cost recovery: everything except the markup."""
        c = self.components
        return c.solana_gas_cost + c.solana_rent_cost + c.provider_fee + c.fixed_buffer

    @property
    def total_fee_lamports(self) -> int:
        return self.total_cost_lamports + self.components.percentage_markup

    def amount_in(self, token: FeeToken) -> int:
        """The same fee expressed in either settlement token."""
        if token == self.fee_token:
            return self.total_fee
        if token == FeeToken.SOL:
            return self.total_fee_lamports
        return lamports_to_usdc(self.total_fee_lamports, self.sol_price_usdc)


class SwapRequest(BaseModel):
    """Validated /swap request."""
    user_wallet: str
    input_token: str
    input_token_symbol: str = "UNKNOWN"
    input_amount: int
    dest_chain_id: int
    dest_chain: str
    output_token: str
    output_token_symbol: str = "UNKNOWN"
    recipient_address: str
    selected_provider: BridgeProviderName
    provider_data: str  # Tagged base64 blob from /quote
    quoted_fee: int
    fee_token: FeeToken


class SwapResult(BaseModel):
    swap_id: str
    fee_payment_tx: str  # Base64, sponsor-signed
    bridge_tx: str  # Base64, unsigned
    bridge_order_id: str
    status: SwapStatus


class SwapRecord(BaseModel):
    """Persisted swap row."""
    id: str
    wallet_address: str
    input_token: str
    input_token_symbol: Optional[str] = None
    input_amount: str
    output_token: str
    output_token_symbol: Optional[str] = None
    source_chain: str = "solana"
    dest_chain: str
    dest_chain_id: int
    provider: BridgeProviderName
    dest_tx_hash: Optional[str] = None
    sponsor_fee_paid: str
    fee_token: FeeToken
    bridge_order_id: Optional[str] = None
    status: SwapStatus
    error_message: Optional[str] = None
    created_at: str
    updated_at: str


class ComparisonQuotes(BaseModel):
    quotes: List[Quote] = Field(default_factory=list)
    best_quote: Quote
