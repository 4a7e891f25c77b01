"""At-most-once bookkeeping for operations with real-world side effects.

TransactionDeduplicator tracks which transaction ids are in flight and which
have completed, so that a retried or concurrent caller cannot apply the same
credit or debit twice. All state changes happen under one asyncio.Lock.
Completed ids can be persisted to a JSON file and expire after max_age.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import TypeVar

from meeting_transcriber.utils.errors import BillingError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_AGE = timedelta(days=90)


class DuplicateTransactionError(BillingError):
    """Raised when a transaction id is already processed or in flight."""

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction '{transaction_id}' already processed or in flight",
            operation="dedup",
        )


class TransactionDeduplicator:
    """Processed/in-flight transaction registry.

    Args:
        store_path: Optional JSON file for processed ids and timestamps.
        max_age: Processed ids older than this are forgotten on load.
    """

    def __init__(
        self,
        store_path: str | None = None,
        max_age: timedelta = DEFAULT_MAX_AGE,
    ) -> None:
        self._store_path = store_path
        self._max_age = max_age
        self._processed: dict[str, datetime] = {}
        self._in_flight: set[str] = set()
        self._lock = asyncio.Lock()
        self._load()
        self._cleanup_old()

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def is_processed_or_in_flight(self, transaction_id: str) -> bool:
        async with self._lock:
            return self._is_known(transaction_id)

    async def mark_as_in_flight(self, transaction_id: str) -> None:
        """Mark an id as being processed. Call before starting async work."""
        async with self._lock:
            self._in_flight.add(transaction_id)
            logger.info(
                "Marked transaction %s in flight (%d in flight)",
                transaction_id,
                len(self._in_flight),
            )

    async def claim(self, transaction_id: str) -> bool:
        """Atomically check and mark an id in flight.

        Returns:
            True if the caller now owns the transaction, False if it was
            already processed or in flight.
        """
        async with self._lock:
            if self._is_known(transaction_id):
                return False
            self._in_flight.add(transaction_id)
            return True

    async def complete_processing(self, transaction_id: str, success: bool) -> None:
        """Release an in-flight id; record it as processed on success.

        A failed transaction is only released, so a later call may retry it.
        """
        async with self._lock:
            self._in_flight.discard(transaction_id)
            if success:
                self._processed[transaction_id] = datetime.now(UTC)
                self._save()
                logger.info(
                    "Completed transaction %s (%d processed)",
                    transaction_id,
                    len(self._processed),
                )
            else:
                logger.warning(
                    "Transaction %s failed; released for retry", transaction_id
                )

    async def run_once(
        self, transaction_id: str, operation: Callable[[], Awaitable[T]]
    ) -> T:
        """Run operation() at most once per transaction id.

        Raises:
            DuplicateTransactionError: If the id is already processed or
                in flight.
        """
        if not await self.claim(transaction_id):
            raise DuplicateTransactionError(transaction_id)
        success = False
        try:
            result = await operation()
            success = True
            return result
        finally:
            await self.complete_processing(transaction_id, success)

    def _is_known(self, transaction_id: str) -> bool:
        if transaction_id in self._processed:
            logger.info("Transaction %s already processed", transaction_id)
            return True
        if transaction_id in self._in_flight:
            logger.info("Transaction %s currently in flight", transaction_id)
            return True
        return False

    def _load(self) -> None:
        if not self._store_path or not os.path.exists(self._store_path):
            return
        try:
            with open(self._store_path, encoding="utf-8") as f:
                raw = json.load(f)
            self._processed = {
                tid: datetime.fromisoformat(ts) for tid, ts in raw.items()
            }
        except (OSError, ValueError, AttributeError) as exc:
            raise BillingError(
                f"Cannot load processed transactions from {self._store_path}: {exc}",
                operation="load",
            ) from exc
        logger.info("Loaded %d processed transaction ids", len(self._processed))

    def _save(self) -> None:
        if not self._store_path:
            return
        payload = {tid: ts.isoformat() for tid, ts in self._processed.items()}
        tmp_path = f"{self._store_path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f)
        os.replace(tmp_path, self._store_path)

    def _cleanup_old(self) -> None:
        cutoff = datetime.now(UTC) - self._max_age
        expired = [tid for tid, ts in self._processed.items() if ts < cutoff]
        if not expired:
            return
        for tid in expired:
            del self._processed[tid]
        self._save()
        logger.info("Cleaned up %d old transactions", len(expired))
