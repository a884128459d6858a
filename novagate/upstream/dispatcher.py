"""
Failover dispatcher — rotate credentials until one call succeeds.

Every request gets a fresh random order over the whole pool, so load spreads
across keys and no caller can predict which key serves them. Keys are tried
one at a time; the first success wins and nothing else is called.
"""

from __future__ import annotations

import logging
import random

from novagate.credentials import CredentialPool
from novagate.upstream.base import (
    AllCredentialsExhausted,
    NoCredentialsAvailable,
    UpstreamError,
    UpstreamResponse,
)
from novagate.upstream.openrouter import OpenRouterClient

logger = logging.getLogger(__name__)


class FailoverDispatcher:
    """Drives the upstream client across a shuffled credential pool."""

    def __init__(
        self,
        pool: CredentialPool,
        client: OpenRouterClient,
        rng: random.Random | None = None,
    ):
        self.pool = pool
        self.client = client
        self._rng = rng

    async def dispatch(
        self,
        messages: list[dict],
        max_tokens: int | None = None,
    ) -> UpstreamResponse | AllCredentialsExhausted:
        """
        Try each credential once, in random order.
        Returns the first success, or AllCredentialsExhausted with every cause.
        """
        if not self.pool.size():
            logger.error("Dispatch failed: credential pool is empty")
            return NoCredentialsAvailable()

        errors: list[UpstreamError] = []

        for credential in self.pool.shuffled(self._rng):
            logger.debug("Trying upstream with %s", credential.label)
            result = await self.client.call(credential, messages, max_tokens)

            if result.ok:
                logger.info(
                    "Upstream served by %s in %.0fms (%d failed before it)",
                    credential.label, result.latency_ms, len(errors),
                )
                return result

            errors.append(result)
            logger.warning("%s failed, trying next key: %s", credential.label, result)

        exhausted = AllCredentialsExhausted(errors=errors)
        logger.error("All %d credentials failed: %s", len(errors), exhausted.summary)
        return exhausted
