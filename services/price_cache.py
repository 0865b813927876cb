"""Short-lived SOL/USDC price cache."""
import asyncio
import time
from decimal import Decimal
from typing import Awaitable, Callable, Optional
from loguru import logger

from utils.constants import SOL_PRICE_CACHE_TTL_SECONDS


class PriceCache:
    """
    Holds one price value with a fixed freshness window.

    Only one refresh runs at a time. Readers arriving while a refresh is
    in flight get the stale value when there is one; the fee calculator
    always rounds in the sponsor's favour, so this staleness is acceptable.
    """

    def __init__(
        self,
        fetch_price: Callable[[], Awaitable[Decimal]],
        ttl_seconds: float = SOL_PRICE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch_price = fetch_price
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._price: Optional[Decimal] = None
        self._fetched_at: float = 0.0
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return self._price is not None and self._clock() - self._fetched_at < self.ttl_seconds

    async def get_or_refresh(self) -> Decimal:
        """
        Return the cached price, refetching it once the TTL has lapsed.

        Raises:
            PriceUnavailable: if this reader performs the refresh and it fails
        """
        if self._is_fresh():
            return self._price

        if self._lock.locked() and self._price is not None:
            return self._price

        async with self._lock:
            # Another reader may have refreshed while we waited
            if self._is_fresh():
                return self._price

            price = await self._fetch_price()
            self._price = price
            self._fetched_at = self._clock()
            logger.debug("SOL price refreshed: {} USDC", price)
            return price
