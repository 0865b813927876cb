"""Error taxonomy for the sponsored bridge service."""
from typing import List, Optional


class BridgeServiceError(Exception):
    """Base class for every error the service surfaces to callers."""
    status_code = 500

    def __init__(self, msg: str):
        super().__init__(msg)
        self.msg = msg


class ConfigError(BridgeServiceError):
    """Raised at process start when required configuration is missing."""


class ValidationError(BridgeServiceError):
    """Missing or unsupported request fields. User-correctable."""
    status_code = 400


class SwapNotFound(BridgeServiceError):
    status_code = 404

    def __init__(self, swap_id: str):
        super().__init__(f"Swap not found: {swap_id}")
        self.swap_id = swap_id


class ProviderQuoteError(BridgeServiceError):
    """
    Raised when a provider quote call does not succeed.
    Carries the provider's HTTP status (None on transport failure) and body.
    """
    status_code = 502

    def __init__(self, provider: str, status_code: Optional[int], body: str):
        label = status_code if status_code is not None else "transport"
        super().__init__(f"{provider} quote failed ({label}): {body}")
        self.provider = provider
        self.http_status = status_code
        self.body = body


class ProviderResponseShapeError(BridgeServiceError):
    """Raised when a provider payload lacks the substructure we need."""
    status_code = 502

    def __init__(self, provider: str, detail: str):
        super().__init__(f"{provider}: {detail}")
        self.provider = provider
        self.detail = detail


class NoQuotesAvailable(BridgeServiceError):
    status_code = 502

    def __init__(self, errors: Optional[List[Exception]] = None):
        super().__init__("No valid quotes available from any provider")
        self.errors = errors or []


class QuoteSuperseded(BridgeServiceError):
    """Raised to a quote caller whose request was replaced by a newer one."""
    status_code = 409

    def __init__(self, intent_key: str):
        super().__init__(f"Quote request superseded for {intent_key}")
        self.intent_key = intent_key


class FeeDriftExceeded(BridgeServiceError):
    status_code = 409

    def __init__(self, quoted_fee: int, recomputed_fee: int):
        super().__init__(
            "Fee has increased significantly since quote. Please request a new quote."
        )
        self.quoted_fee = quoted_fee
        self.recomputed_fee = recomputed_fee


class SponsorInsufficientBalance(BridgeServiceError):
    status_code = 503

    def __init__(self, balance: int, required: int):
        super().__init__(
            f"Sponsor wallet insufficient balance: {balance / 1e9:.4f} SOL, "
            f"need {required / 1e9:.4f} SOL"
        )
        self.balance = balance
        self.required = required


class PriceUnavailable(BridgeServiceError):
    status_code = 503


class ChainReadError(BridgeServiceError):
    """An RPC read (balance, account, blockhash) failed."""
    status_code = 503


class PersistenceError(BridgeServiceError):
    status_code = 500
