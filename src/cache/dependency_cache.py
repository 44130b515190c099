"""Shared dependency cache with write-once-per-key semantics."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional, Set

logger = logging.getLogger(__name__)


class DependencyCache(ABC):
    """Interface for a cache shared by all component builds of a run.

    Entries are append-only: once a key holds a value it is never
    overwritten. Implementations must make concurrent writers to the same
    key safe (first writer wins, the rest wait for its value).
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None if absent."""
        pass

    @abstractmethod
    def get_or_create(self, key: str, factory: Callable[[], str]) -> str:
        """Return the value for key, computing it with factory at most once.

        If factory raises, the key stays unset and the exception propagates
        to that caller; a later caller may try again.
        """
        pass

    @abstractmethod
    def keys(self) -> Set[str]:
        """Return all populated keys."""
        pass


class InMemoryDependencyCache(DependencyCache):
    """Thread-safe in-memory cache, one lock per key.

    The registry lock only guards lookups of per-key locks and the value
    map, so a slow factory for one key never blocks other keys.
    """

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._key_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def get(self, key: str) -> Optional[str]:
        with self._registry_lock:
            return self._values.get(key)

    def get_or_create(self, key: str, factory: Callable[[], str]) -> str:
        existing = self.get(key)
        if existing is not None:
            return existing

        with self._lock_for(key):
            # Another worker may have filled the key while we waited
            existing = self.get(key)
            if existing is not None:
                logger.debug("Cache hit for %s after wait", key)
                return existing

            logger.debug("Cache miss for %s, populating", key)
            value = factory()
            with self._registry_lock:
                self._values[key] = value
            return value

    def keys(self) -> Set[str]:
        with self._registry_lock:
            return set(self._values)

    def clear(self) -> None:
        """Drop all entries. Useful for testing."""
        with self._registry_lock:
            self._values.clear()
            self._key_locks.clear()
