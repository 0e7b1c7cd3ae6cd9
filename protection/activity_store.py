"""
Client activity tracking for bot protection.

Stores per-client request timestamps used by the rate limiting and
timing layers of the protection gate.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class ClientActivityStore(ABC):
    """Abstract store of request timestamps keyed by client id."""

    @abstractmethod
    def record(self, client_id: str, ts: float) -> None:
        """Append a request timestamp for a client."""

    @abstractmethod
    def count_since(self, client_id: str, since: float) -> int:
        """Count requests from a client strictly after ``since``."""

    @abstractmethod
    def last_seen(self, client_id: str) -> Optional[float]:
        """Most recent recorded timestamp for a client, if any."""

    @abstractmethod
    def purge_before(self, cutoff: float) -> int:
        """Drop timestamps older than ``cutoff``. Returns clients removed."""

    @abstractmethod
    def client_count(self) -> int:
        """Number of clients currently tracked."""


class InMemoryActivityStore(ClientActivityStore):
    """
    Single-process activity store.

    Every operation holds one lock, so concurrent requests for the same
    client never lose an append.
    """

    def __init__(self):
        self._timestamps: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def record(self, client_id: str, ts: float) -> None:
        with self._lock:
            self._timestamps[client_id].append(ts)

    def count_since(self, client_id: str, since: float) -> int:
        with self._lock:
            return sum(1 for t in self._timestamps.get(client_id, ()) if t > since)

    def last_seen(self, client_id: str) -> Optional[float]:
        with self._lock:
            stamps = self._timestamps.get(client_id)
            return stamps[-1] if stamps else None

    def purge_before(self, cutoff: float) -> int:
        removed = 0
        with self._lock:
            for client_id in list(self._timestamps):
                kept = [t for t in self._timestamps[client_id] if t > cutoff]
                if kept:
                    self._timestamps[client_id] = kept
                else:
                    del self._timestamps[client_id]
                    removed += 1
        if removed:
            logger.debug(f"Purged activity for {removed} idle clients")
        return removed

    def client_count(self) -> int:
        with self._lock:
            return len(self._timestamps)
