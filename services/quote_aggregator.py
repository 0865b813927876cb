"""Concurrent quote fan-out across bridge providers."""
import asyncio
from typing import Dict, List, Optional, Sequence, Set
from loguru import logger

from exchange.bridge_provider import BridgeProvider
from models.schemas import BridgeProviderName, ComparisonQuotes, Quote, QuoteRequest
from services.exceptions import NoQuotesAvailable, QuoteSuperseded, ValidationError


def select_best_quote(quotes: Sequence[Quote]) -> Quote:
    """
    Highest estimated output wins. On a tie the quote that came first
    (provider registration order) is kept; no secondary criterion applies.
    """
    best = quotes[0]
    for quote in quotes[1:]:
        if quote.estimated_output_amount > best.estimated_output_amount:
            best = quote
    return best


class QuoteAggregator:
    """Fans a quote request out to every registered provider."""

    def __init__(self, providers: Sequence[BridgeProvider]):
        self.providers: List[BridgeProvider] = list(providers)
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._superseded: Set[asyncio.Task] = set()

    def get_provider(self, name: BridgeProviderName | str) -> BridgeProvider:
        for provider in self.providers:
            if provider.name == name or provider.name.value == name:
                return provider
        raise ValidationError(f"Unsupported provider: {name}")

    async def close(self) -> None:
        for provider in self.providers:
            await provider.close()

    async def get_comparison_quotes(
        self,
        request: QuoteRequest,
        intent_key: Optional[str] = None,
    ) -> ComparisonQuotes:
        """
        Quote every provider concurrently and pick the best route.

        When intent_key is given, a newer call with the same key abandons
        this one: its outbound calls are cancelled and QuoteSuperseded is
        raised here.

        Raises:
            NoQuotesAvailable: if every provider failed
            QuoteSuperseded: if a newer request for the same intent replaced this one
        """
        if intent_key is None:
            return await self._collect(request)

        previous = self._in_flight.get(intent_key)
        if previous is not None and not previous.done():
            logger.debug("Superseding in-flight quote request for {}", intent_key)
            self._superseded.add(previous)
            previous.cancel()

        task = asyncio.create_task(self._collect(request))
        self._in_flight[intent_key] = task
        try:
            return await task
        except asyncio.CancelledError:
            if task in self._superseded:
                raise QuoteSuperseded(intent_key)
            raise
        finally:
            self._superseded.discard(task)
            if self._in_flight.get(intent_key) is task:
                del self._in_flight[intent_key]

    async def _collect(self, request: QuoteRequest) -> ComparisonQuotes:
        results = await asyncio.gather(
            *(provider.get_quote(request) for provider in self.providers),
            return_exceptions=True,
        )

        quotes: List[Quote] = []
        errors: List[Exception] = []
        for provider, result in zip(self.providers, results):
            if isinstance(result, Exception):
                logger.warning("Provider {} quote failed: {}", provider.name.value, result)
                errors.append(result)
            else:
                quotes.append(result)

        if not quotes:
            raise NoQuotesAvailable(errors)

        best = select_best_quote(quotes)
        logger.info(
            "Collected {}/{} quotes, best: {} ({})",
            len(quotes),
            len(self.providers),
            best.provider.value,
            best.estimated_output_amount,
        )
        return ComparisonQuotes(quotes=quotes, best_quote=best)
