"""SQLite persistence for swap records."""
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from models.schemas import (
    BridgeProviderName,
    FeeToken,
    SwapRecord,
    SwapStatus,
    TERMINAL_STATUSES,
)
from services.exceptions import PersistenceError
from utils.constants import HISTORY_LIMIT, SOURCE_CHAIN

_TERMINAL_VALUES = tuple(s.value for s in TERMINAL_STATUSES)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SwapStore:
    """
    SQLite-backed swap history.

    Rows are created by the executor and updated by the executor and the
    status poller; nothing here deletes them. Each update is a single-row
    atomic statement.
    """

    def __init__(self, db_path: str = "./data/sponsored_bridge.db"):
        self.db_path = db_path
        dir_name = os.path.dirname(os.path.abspath(self.db_path))
        if dir_name:
            os.makedirs(dir_name, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=5.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        try:
            with self._connect() as conn:
                # Enable WAL mode for better concurrency
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA synchronous=NORMAL")

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS swaps (
                        id TEXT PRIMARY KEY,
                        wallet_address TEXT NOT NULL,
                        input_token TEXT NOT NULL,
                        input_token_symbol TEXT,
                        input_amount TEXT NOT NULL,
                        output_token TEXT NOT NULL,
                        output_token_symbol TEXT,
                        source_chain TEXT NOT NULL,
                        dest_chain TEXT NOT NULL,
                        dest_chain_id INTEGER NOT NULL,
                        provider TEXT NOT NULL,
                        dest_tx_hash TEXT,
                        sponsor_fee_paid TEXT NOT NULL,
                        fee_token TEXT NOT NULL,
                        bridge_order_id TEXT,
                        status TEXT NOT NULL,
                        error_message TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)

                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_swaps_wallet_created_at "
                    "ON swaps(wallet_address, created_at DESC)"
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to initialize swap store: {e}") from e

    def create_swap(
        self,
        wallet_address: str,
        input_token: str,
        input_amount: int,
        output_token: str,
        dest_chain: str,
        dest_chain_id: int,
        provider: BridgeProviderName,
        sponsor_fee_paid: int,
        fee_token: FeeToken,
        input_token_symbol: Optional[str] = None,
        output_token_symbol: Optional[str] = None,
    ) -> str:
        """Create a new swap record in status pending and return its id."""
        swap_id = uuid.uuid4().hex
        now = _now()

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO swaps (id, wallet_address, input_token, input_token_symbol,
                                       input_amount, output_token, output_token_symbol,
                                       source_chain, dest_chain, dest_chain_id, provider,
                                       sponsor_fee_paid, fee_token, status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (swap_id, wallet_address, input_token, input_token_symbol,
                     str(input_amount), output_token, output_token_symbol,
                     SOURCE_CHAIN, dest_chain, dest_chain_id, provider.value,
                     str(sponsor_fee_paid), fee_token.value, SwapStatus.PENDING.value, now, now),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to create swap record: {e}") from e
        return swap_id

    def mark_fee_paid(self, swap_id: str, bridge_order_id: str) -> None:
        """Both legs were built; attach the provider order id."""
        self._update(
            swap_id,
            "status = ?, bridge_order_id = ?",
            (SwapStatus.FEE_PAID.value, bridge_order_id),
        )

    def fail_swap(self, swap_id: str, error: str) -> None:
        """Mark a swap as failed."""
        self._update(swap_id, "status = ?, error_message = ?", (SwapStatus.FAILED.value, error))

    def update_status(
        self,
        swap_id: str,
        status: SwapStatus,
        dest_tx_hash: Optional[str] = None,
    ) -> bool:
        """
        Record a status reported by the bridge provider.

        Returns:
            False if the row was already terminal (or missing) and nothing changed
        """
        return self._update(
            swap_id,
            "status = ?, dest_tx_hash = COALESCE(?, dest_tx_hash)",
            (status.value, dest_tx_hash),
        )

    def _update(self, swap_id: str, assignments: str, params: tuple) -> bool:
        # Terminal rows are never transitioned again
        placeholders = ", ".join("?" for _ in _TERMINAL_VALUES)
        query = (
            f"UPDATE swaps SET {assignments}, updated_at = ? "
            f"WHERE id = ? AND status NOT IN ({placeholders})"
        )
        try:
            with self._connect() as conn:
                cur = conn.execute(query, (*params, _now(), swap_id, *_TERMINAL_VALUES))
                return cur.rowcount > 0
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to update swap {swap_id}: {e}") from e

    def get_swap(self, swap_id: str) -> Optional[SwapRecord]:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM swaps WHERE id = ?", (swap_id,)).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read swap {swap_id}: {e}") from e
        return SwapRecord(**dict(row)) if row else None

    def list_swaps(self, wallet_address: str, limit: int = HISTORY_LIMIT) -> List[SwapRecord]:
        """Most recent swaps for a wallet, newest first."""
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    "SELECT * FROM swaps WHERE wallet_address = ? "
                    "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                    (wallet_address, limit),
                )
                return [SwapRecord(**dict(row)) for row in cur.fetchall()]
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list swaps for {wallet_address}: {e}") from e
