"""
Dedup ledger for WaBot auto-reply.

Remembers which inbound messages already got a reply so that repeated
polling cycles do not answer the same message twice.

Provides:
- Bounded key set with batch FIFO eviction
- One ledger per connector
"""

import threading
from collections import OrderedDict
from typing import Any

from loguru import logger


def make_key(connector_id: str, message_id: str) -> str:
    """Build the dedup key for a message on a connector."""
    return f"{connector_id}:{message_id}"


class DedupLedger:
    """
    Bounded set of processed message keys.

    Keys are kept in insertion order. Once the ledger grows past
    ``capacity`` the oldest ``evict_count`` keys are dropped in one batch.
    All operations take a lock so overlapping cycles in a threaded host
    see a consistent set.
    """

    def __init__(self, capacity: int = 1000, evict_count: int = 500):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if not 1 <= evict_count <= capacity:
            raise ValueError("evict_count must be between 1 and capacity")

        self.capacity = capacity
        self.evict_count = evict_count

        self._keys: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

        # Stats
        self._total_marked = 0
        self._total_evicted = 0

    def seen(self, key: str) -> bool:
        """Check whether a key was already processed."""
        with self._lock:
            return key in self._keys

    def mark(self, key: str) -> None:
        """
        Record a key as processed.

        Marking a key that is already present does not move it.
        """
        with self._lock:
            if key in self._keys:
                return
            self._keys[key] = None
            self._total_marked += 1

            if len(self._keys) > self.capacity:
                self._evict()

    def _evict(self) -> None:
        """Drop the oldest batch of keys. Caller holds the lock."""
        for _ in range(min(self.evict_count, len(self._keys))):
            self._keys.popitem(last=False)
        self._total_evicted += self.evict_count
        logger.debug(
            f"Ledger over capacity ({self.capacity}), evicted {self.evict_count} oldest keys"
        )

    def reset(self) -> None:
        """Forget every processed key."""
        with self._lock:
            self._keys.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.seen(key)

    def get_stats(self) -> dict[str, Any]:
        """Get ledger statistics."""
        with self._lock:
            return {
                "size": len(self._keys),
                "capacity": self.capacity,
                "total_marked": self._total_marked,
                "total_evicted": self._total_evicted,
            }


class LedgerRegistry:
    """
    Holds one DedupLedger per connector.

    Ledgers are created on first use. At most ``max_connectors`` are kept;
    past that the least recently used connector's ledger is dropped.
    """

    def __init__(self, capacity: int = 1000, evict_count: int = 500, max_connectors: int = 100):
        if max_connectors < 1:
            raise ValueError("max_connectors must be positive")

        self.capacity = capacity
        self.evict_count = evict_count
        self.max_connectors = max_connectors
        self._ledgers: OrderedDict[str, DedupLedger] = OrderedDict()
        self._lock = threading.Lock()
        self._dropped_connectors = 0

    def for_connector(self, connector_id: str) -> DedupLedger:
        """Get (or create) the ledger for a connector."""
        with self._lock:
            ledger = self._ledgers.get(connector_id)
            if ledger is not None:
                self._ledgers.move_to_end(connector_id)
                return ledger

            ledger = DedupLedger(self.capacity, self.evict_count)
            self._ledgers[connector_id] = ledger

            while len(self._ledgers) > self.max_connectors:
                dropped, _ = self._ledgers.popitem(last=False)
                self._dropped_connectors += 1
                logger.info(f"Dropped dedup ledger for idle connector {dropped}")

            return ledger

    def reset(self, connector_id: str | None = None) -> None:
        """Clear one connector's ledger, or all of them."""
        with self._lock:
            if connector_id is None:
                self._ledgers.clear()
            else:
                self._ledgers.pop(connector_id, None)

    @property
    def total_size(self) -> int:
        """Processed keys across all connectors."""
        with self._lock:
            ledgers = list(self._ledgers.values())
        return sum(len(ledger) for ledger in ledgers)

    @property
    def dropped_connectors(self) -> int:
        """Connectors whose ledger was dropped to stay under the bound."""
        return self._dropped_connectors

    def get_stats(self) -> dict[str, Any]:
        """Get per-connector ledger statistics."""
        with self._lock:
            ledgers = dict(self._ledgers)
        return {
            connector_id: ledger.get_stats()
            for connector_id, ledger in ledgers.items()
        }
