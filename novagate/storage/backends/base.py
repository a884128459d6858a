"""
UsageStore — abstract base for durable usage-counter storage.

The usage tracker only needs a handful of key-value primitives:
  get                  — current count, None if absent or expired
  set_with_expiry      — write a count with a TTL
  increment            — atomic +1, expiry untouched
  create_or_increment  — atomic "1 with TTL if absent, else +1"

Counting policy (limits, windows, key naming) stays in UsageTracker.
Backends only move integers around and must serialize conflicting updates
themselves, since several gateway replicas may share one store.
"""

from abc import ABC, abstractmethod


class UsageStore(ABC):
    """Abstract durable counter store."""

    name = "abstract"

    @abstractmethod
    def get(self, key: str) -> int | None:
        """Return the stored count, or None if the key is absent or expired."""
        ...

    @abstractmethod
    def set_with_expiry(self, key: str, value: int, ttl_seconds: int) -> None:
        """Store value under key, expiring ttl_seconds from now."""
        ...

    @abstractmethod
    def increment(self, key: str) -> int:
        """
        Atomically add 1 and return the new value.
        The key's expiry is left untouched. A missing key starts at 1
        with no expiry (same as Redis INCR).
        """
        ...

    @abstractmethod
    def create_or_increment(self, key: str, ttl_seconds: int) -> int:
        """
        Atomically add 1 to a live key, or create it at 1 with the given TTL.
        Returns the new value.
        """
        ...

    @abstractmethod
    def ttl(self, key: str) -> int | None:
        """Seconds until key expires; None if absent or without expiry."""
        ...

    def ping(self) -> bool:
        """Return True if the store is reachable."""
        return True
