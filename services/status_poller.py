"""Swap status polling against the owning bridge provider."""
from loguru import logger

from models.schemas import StatusResult
from services.exceptions import SwapNotFound
from services.quote_aggregator import QuoteAggregator
from services.swap_store import SwapStore


class StatusPoller:
    """Refreshes a swap's status on demand."""

    def __init__(self, store: SwapStore, aggregator: QuoteAggregator):
        self.store = store
        self.aggregator = aggregator

    async def poll_swap_status(self, swap_id: str) -> StatusResult:
        """
        Current status of a swap.

        Terminal records and records without a bridge order are answered
        from the store. Otherwise the provider is asked once and the record
        is written only when something changed.

        Raises:
            SwapNotFound: if no record exists for swap_id
        """
        record = self.store.get_swap(swap_id)
        if record is None:
            raise SwapNotFound(swap_id)

        if record.status.is_terminal or not record.bridge_order_id:
            return StatusResult(status=record.status, dest_tx_hash=record.dest_tx_hash)

        provider = self.aggregator.get_provider(record.provider)
        result = await provider.get_status(record.bridge_order_id)

        new_hash = result.dest_tx_hash and result.dest_tx_hash != record.dest_tx_hash
        if result.status != record.status or new_hash:
            if self.store.update_status(swap_id, result.status, result.dest_tx_hash):
                logger.info(
                    "Swap {} status: {} -> {}",
                    swap_id,
                    record.status.value,
                    result.status.value,
                )

        return StatusResult(
            status=result.status,
            dest_tx_hash=result.dest_tx_hash or record.dest_tx_hash,
        )
