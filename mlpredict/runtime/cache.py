"""
Single-flight keyed cache.

Backs the process-wide dependency cache and the per-directory runtime cache.
Both are append-only: entries are built once and never invalidated. When
several threads miss on the same key at once, exactly one runs the builder
and the others block until it finishes, then receive the same value.
"""

from threading import Lock
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class KeyedBuildCache(Generic[K, V]):
    """Thread-safe cache with at most one concurrent build per key.

    A builder that raises leaves no entry behind, so a later call retries.
    Callers that want failures remembered should return a failure value
    instead of raising.
    """

    def __init__(self, name: str = "cache"):
        """Initialize the cache.

        Args:
            name: Label used in statistics and log messages.
        """
        self.name = name
        self._entries: Dict[K, V] = {}
        self._key_locks: Dict[K, Lock] = {}
        self._lock = Lock()
        self._hits = 0
        self._builds = 0

    def get_or_build(self, key: K, builder: Callable[[], V]) -> V:
        """Return the cached value for ``key``, building it on first request.

        Args:
            key: Cache key
            builder: Zero-argument callable producing the value.

        Returns:
            The cached or freshly built value.
        """
        with self._lock:
            if key in self._entries:
                self._hits += 1
                return self._entries[key]
            key_lock = self._key_locks.setdefault(key, Lock())

        with key_lock:
            # Another thread may have finished the build while we waited
            with self._lock:
                if key in self._entries:
                    self._hits += 1
                    return self._entries[key]

            value = builder()

            with self._lock:
                self._entries[key] = value
                self._builds += 1
                self._key_locks.pop(key, None)
            return value

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            return self._entries.get(key)

    def contains(self, key: K) -> bool:
        with self._lock:
            return key in self._entries

    def clear(self) -> None:
        """Drop every entry. Only meant for tests and long-lived hosts that reload."""
        with self._lock:
            self._entries.clear()
            self._key_locks.clear()
            self._hits = 0
            self._builds = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def builds(self) -> int:
        """Number of builder invocations that completed."""
        return self._builds

    @property
    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                "name": self.name,
                "size": len(self._entries),
                "builds": self._builds,
                "hits": self._hits,
            }
