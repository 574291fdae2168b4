import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class SuggestionCache:
    """Thread-safe in-memory cache with per-entry TTL and LRU eviction.

    Entries expire ``ttl`` seconds after they were written. When more than
    ``capacity`` entries are stored the least recently used ones are dropped.
    """

    def __init__(
        self,
        capacity: int = 1000,
        ttl: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.capacity = capacity
        self.ttl = ttl
        self.clock = clock
        self._entries: "OrderedDict[str, tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                logger.debug("cache miss %s", key)
                return None
            inserted_at, value = item
            if self.clock() - inserted_at >= self.ttl:
                del self._entries[key]
                logger.debug("cache expired %s", key)
                return None
            self._entries.move_to_end(key)
            logger.debug("cache hit %s", key)
            return value

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self.clock(), value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("cache evicted %s", evicted)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
