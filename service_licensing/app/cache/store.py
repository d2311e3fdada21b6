"""
Cache store protocol and in-process backend.
"""

import copy
import threading
from typing import Dict, Any, Optional, Protocol, runtime_checkable

from shared.logging import get_logger


@runtime_checkable
class CacheStore(Protocol):
    """Key-value store the verdict coordinator reads and writes."""

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def write(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> bool:
        ...

    def delete(self, key: str) -> bool:
        ...

    def exists(self, key: str) -> bool:
        ...


class MemoryCacheStore:
    """Process-local store.

    Does not expire keys on its own; the TTL passed to ``write`` is
    recorded but never enforced, so readers must apply their own
    staleness checks.
    """

    def __init__(self):
        self.logger = get_logger("licensing.cache.memory")
        self._data: Dict[str, Dict[str, Any]] = {}
        self._ttls: Dict[str, int] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def write(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> bool:
        with self._lock:
            self._data[key] = copy.deepcopy(value)
            self._ttls[key] = ttl_seconds
        self.logger.debug("Stored cache entry", cache_key=key, ttl=ttl_seconds)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            self._ttls.pop(key, None)
            return self._data.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def ttl(self, key: str) -> Optional[int]:
        """TTL the entry was written with."""
        with self._lock:
            return self._ttls.get(key)

    def health_check(self) -> bool:
        return True
