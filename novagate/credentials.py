"""
Credential pool — the fixed set of upstream API keys.

Built once at startup from config (upstream.api_keys, usually ${AI_API_KEY_n}
references). Blank entries are dropped. The pool never changes afterwards;
the dispatcher asks it for a fresh random order on every request.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_system_random = random.SystemRandom()


@dataclass(frozen=True)
class Credential:
    """One upstream API key. Only the label is ever logged."""
    index: int
    secret: str = field(repr=False)

    @property
    def label(self) -> str:
        return f"key-{self.index}"


class CredentialPool:
    """Immutable, ordered set of credentials."""

    def __init__(self, secrets: list[str] | tuple[str, ...]):
        creds = []
        for i, secret in enumerate(secrets, start=1):
            if not secret or not str(secret).strip():
                continue
            creds.append(Credential(index=i, secret=str(secret).strip()))
        self._credentials: tuple[Credential, ...] = tuple(creds)

    @classmethod
    def from_config(cls, cfg: dict) -> "CredentialPool":
        keys = cfg.get("upstream", {}).get("api_keys") or []
        pool = cls(keys)
        if not pool.size():
            logger.warning("No upstream API keys configured — every chat request will fail")
        else:
            logger.info("Credential pool: %d key(s) (%s)", pool.size(), ", ".join(pool.labels()))
        return pool

    def size(self) -> int:
        return len(self._credentials)

    def labels(self) -> list[str]:
        return [c.label for c in self._credentials]

    def shuffled(self, rng: random.Random | None = None) -> list[Credential]:
        """
        Return a new uniformly random permutation of the pool.
        Drawn fresh on every call; the pool itself is never reordered.
        """
        order = list(self._credentials)
        (rng or _system_random).shuffle(order)
        return order

    def __len__(self) -> int:
        return len(self._credentials)

    def __iter__(self):
        return iter(self._credentials)

    def __repr__(self) -> str:
        return f"<CredentialPool size={self.size()}>"
