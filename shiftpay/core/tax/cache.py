"""Time-bounded cache for coefficient tables."""

import logging
import threading
import time
from collections.abc import Callable, Hashable
from typing import Any

from shiftpay.core.constants import COEFFICIENT_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)


class TTLCache:
    """
    Thread-safe key/value cache whose entries expire after a fixed TTL.

    Keys are tuples whose second item is the tax year, so a whole year can
    be dropped with invalidate_tax_year when its tables are edited.

    Usage:
        cache = TTLCache(ttl_seconds=3600)
        cache.set(("tax", "2024-25", "scale2"), rows)
        cache.get(("tax", "2024-25", "scale2"))
    """

    def __init__(
        self,
        ttl_seconds: float = COEFFICIENT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def invalidate_tax_year(self, tax_year: str) -> int:
        """Drop every entry for a tax year. Returns the number removed."""
        with self._lock:
            stale = [key for key in self._entries if isinstance(key, tuple) and len(key) > 1 and key[1] == tax_year]
            for key in stale:
                del self._entries[key]
        logger.info("Invalidated %d cached tables for tax year %s", len(stale), tax_year)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
