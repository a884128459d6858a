"""
Usage tracking — per-client request quota over a fixed window.

Two-step protocol so a request that never gets a reply never costs quota:

    decision = tracker.check_and_reserve(client_id)   # read only
    ... upstream call ...
    tracker.commit(client_id, decision.is_new_window)  # only on success

Check and commit are not atomic together. Concurrent requests from one client
can all pass the check at limit-1 and push the count slightly past the limit;
that overshoot is accepted (coarse abuse prevention, not billing). The commit
itself uses the store's atomic create-or-increment, so a burst of "first"
requests never resets a window another request already opened.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from novagate.storage.backends import UsageStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
DEFAULT_WINDOW_SECONDS = 3600 * 24 * 2
DEFAULT_KEY_PREFIX = "AIDemoUsage:"


@dataclass(frozen=True)
class Decision:
    """Result of a quota check."""
    allowed: bool
    is_new_window: bool = False
    used: int = 0


class UsageTracker:
    """Owns the lifecycle of every usage record in the store."""

    def __init__(
        self,
        store: UsageStore,
        limit: int = DEFAULT_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ):
        if limit < 1:
            raise ValueError(f"quota limit must be positive, got {limit}")
        if window_seconds < 1:
            raise ValueError(f"quota window must be positive, got {window_seconds}")
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix

    @classmethod
    def from_config(cls, store: UsageStore, cfg: dict) -> "UsageTracker":
        q = cfg.get("quota", {})
        return cls(
            store,
            limit=int(q.get("limit", DEFAULT_LIMIT)),
            window_seconds=int(q.get("window_seconds", DEFAULT_WINDOW_SECONDS)),
            key_prefix=q.get("key_prefix", DEFAULT_KEY_PREFIX),
        )

    def _key(self, client_id: str) -> str:
        return f"{self.key_prefix}{client_id}"

    def check_and_reserve(self, client_id: str) -> Decision:
        """Read the client's record and decide. Never writes."""
        used = self.store.get(self._key(client_id))
        if used is None:
            return Decision(allowed=True, is_new_window=True, used=0)
        if used >= self.limit:
            logger.info("Quota exhausted for client %s (%d/%d)", client_id, used, self.limit)
            return Decision(allowed=False, is_new_window=False, used=used)
        return Decision(allowed=True, is_new_window=False, used=used)

    def commit(self, client_id: str, is_new_window: bool) -> int:
        """
        Charge one request to the client. Returns the new count.

        A new window starts at 1 and expires window_seconds from now.
        An existing window is incremented with its expiry untouched; if it
        expired since the check, a fresh window is opened instead. Both cases
        are one atomic store call, so a counter never exists without an expiry.
        """
        count = self.store.create_or_increment(self._key(client_id), self.window_seconds)
        if is_new_window and count > 1:
            logger.debug("Client %s window opened concurrently, counted as %d", client_id, count)
        logger.debug("Client %s usage now %d/%d", client_id, count, self.limit)
        return count

    def usage(self, client_id: str) -> dict:
        """Current quota state for one client."""
        key = self._key(client_id)
        used = self.store.get(key) or 0
        return {
            "used": used,
            "limit": self.limit,
            "remaining": max(0, self.limit - used),
            "resets_in": self.store.ttl(key) if used else None,
        }
