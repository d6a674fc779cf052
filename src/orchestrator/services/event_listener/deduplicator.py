"""Event deduplication for preventing duplicate dispatch."""

from collections import OrderedDict


class EventDeduplicator:
    """Remembers recently dispatched events by txHash + logIndex.

    In-memory LRU only. Events replayed after a restart are absorbed by the
    ledger's idempotency check instead.
    """

    def __init__(self, max_memory_size: int = 10000):
        """Initialize event deduplicator.

        Args:
            max_memory_size: Max entries kept in memory
        """
        self.max_memory_size = max_memory_size
        self._seen: OrderedDict[str, None] = OrderedDict()

    @staticmethod
    def _event_id(tx_hash: str, log_index: int) -> str:
        tx_hash = tx_hash.lower()
        if tx_hash.startswith("0x"):
            tx_hash = tx_hash[2:]
        return f"{tx_hash}:{log_index}"

    def is_duplicate(self, tx_hash: str, log_index: int) -> bool:
        """Check if event was already dispatched."""
        return self._event_id(tx_hash, log_index) in self._seen

    def check_and_mark(self, tx_hash: str, log_index: int) -> bool:
        """Mark event as dispatched.

        Returns:
            True if the event is new, False if it is a duplicate
        """
        event_id = self._event_id(tx_hash, log_index)
        if event_id in self._seen:
            self._seen.move_to_end(event_id)
            return False

        self._seen[event_id] = None
        while len(self._seen) > self.max_memory_size:
            self._seen.popitem(last=False)
        return True

    def __len__(self) -> int:
        return len(self._seen)
