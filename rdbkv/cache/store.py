"""
Key-Value Store Module

This module implements the core key-value storage functionality:
- set/get with optional per-key TTL in milliseconds
- Lazy expiration: expired keys are removed when next read by get()

The store is shared by every client connection, so all access goes
through a single lock.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


def _now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class KVStore:
    """
    In-memory key-value store with lazy TTL expiration.

    Internal Storage:
        key -> (value, expires_at_ms)
        expires_at_ms = None means no expiration

    Attributes:
        clock: Callable returning the current time in epoch milliseconds
    """

    def __init__(
            self,
            clock: Callable[[], int] = None,
            logger: logging.Logger = None,
    ):
        """
        Initialize the KV store.

        Args:
            clock: Time source in epoch milliseconds (default: time.time())
            logger: Logger for expiry diagnostics (default: module logger)
        """
        self.clock = clock if clock is not None else _now_ms
        self.logger = logger if logger is not None else logging.getLogger(__name__)

        self._store: Dict[str, Tuple[str, Optional[int]]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: str, ttl_ms: int = 0) -> None:
        """
        Insert or overwrite a key-value pair.

        Args:
            key: The key to store
            value: The value to associate with the key
            ttl_ms: Time-to-live in milliseconds. Any value <= 0 stores the
                key without expiration, clearing a TTL set earlier.
        """
        with self._lock:
            if ttl_ms and ttl_ms > 0:
                expires_at = self.clock() + ttl_ms
                self.logger.debug(f"Key {key!r} set with expiry in {ttl_ms} milliseconds")
            else:
                expires_at = None
            self._store[key] = (value, expires_at)

    def get(self, key: str) -> Optional[str]:
        """
        Retrieve the value for a given key.

        Returns:
            The value if found and not expired, None otherwise.
            An expired key is deleted on the way out.
        """
        with self._lock:
            if self._is_expired(key):
                # Lazy expiration
                del self._store[key]
                self.logger.debug(f"Key {key!r} expired")
                return None

            entry = self._store.get(key)
            return entry[0] if entry is not None else None

    def is_expired(self, key: str) -> bool:
        """True only if the key has a recorded expiry that has passed."""
        with self._lock:
            return self._is_expired(key)

    def _is_expired(self, key: str) -> bool:
        entry = self._store.get(key)
        if entry is None or entry[1] is None:
            return False
        return self.clock() > entry[1]

    def size(self) -> int:
        """
        Get the current number of keys in the store.

        Note: This may include expired keys that haven't been read since.
        """
        with self._lock:
            return len(self._store)

    def clear(self) -> None:
        """Remove all keys from the store."""
        with self._lock:
            self._store.clear()

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the store.

        Returns:
            Dictionary containing:
            - total_keys: Total keys in store
            - volatile_keys: Keys carrying a TTL
            - expired_keys: Keys past their TTL that have not been read yet
        """
        with self._lock:
            now = self.clock()
            volatile = [exp for _, exp in self._store.values() if exp is not None]
            return {
                "total_keys": len(self._store),
                "volatile_keys": len(volatile),
                "expired_keys": sum(1 for exp in volatile if now > exp),
            }
