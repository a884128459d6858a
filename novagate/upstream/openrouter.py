"""
OpenRouter client — one chat completion call with one credential.
Any OpenAI-compatible /chat/completions endpoint works; OpenRouter is the default.
"""

from __future__ import annotations

import logging
import time

import httpx

from novagate.credentials import Credential
from novagate.upstream.base import UpstreamError, UpstreamResponse, extract_content

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://openrouter.ai/api/v1"
DEFAULT_MAX_TOKENS = 5000


class OpenRouterClient:
    """Issues a single upstream request. Never retries; that's the dispatcher's job."""

    def __init__(
        self,
        url: str = DEFAULT_URL,
        model: str = "",
        timeout: float = 60,
        default_max_tokens: int = DEFAULT_MAX_TOKENS,
        referer: str = "",
        title: str = "NovaGate",
    ):
        self.url = url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.default_max_tokens = default_max_tokens
        self.referer = referer
        self.title = title

    @classmethod
    def from_config(cls, cfg: dict) -> "OpenRouterClient":
        up = cfg.get("upstream", {})
        client = cls(
            url=up.get("url") or DEFAULT_URL,
            model=up.get("model", ""),
            timeout=up.get("timeout", 60),
            default_max_tokens=int(up.get("max_tokens", DEFAULT_MAX_TOKENS)),
            referer=up.get("referer", ""),
            title=up.get("title", "NovaGate"),
        )
        if not client.model:
            logger.warning("upstream.model is empty — set AI_MODEL")
        return client

    def _headers(self, credential: Credential) -> dict:
        """Build request headers with auth."""
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {credential.secret}",
        }
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.title:
            headers["X-Title"] = self.title
        return headers

    @staticmethod
    def _scrub(text: str, credential: Credential) -> str:
        """Make sure an error message can't carry the key back out."""
        return text.replace(credential.secret, credential.label) if credential.secret else text

    async def call(
        self,
        credential: Credential,
        messages: list[dict],
        max_tokens: int | None = None,
    ) -> UpstreamResponse | UpstreamError:
        """Forward a non-streaming chat completion with the given credential."""
        if not messages:
            raise ValueError("conversation must contain at least one message")

        body = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens or self.default_max_tokens,
        }

        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.url}/chat/completions",
                    headers=self._headers(credential),
                    json=body,
                )
                latency = (time.monotonic() - t0) * 1000

                if resp.status_code >= 300:
                    return UpstreamError(
                        credential=credential.label,
                        cause=self._scrub(resp.text[:200], credential) or resp.reason_phrase,
                        status_code=resp.status_code,
                        latency_ms=latency,
                    )

                data = resp.json()
        except httpx.TimeoutException:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Upstream call with %s timed out after %.0fms", credential.label, latency)
            return UpstreamError(
                credential=credential.label,
                cause=f"Timeout after {self.timeout}s",
                latency_ms=latency,
            )
        except (httpx.HTTPError, ValueError) as e:
            latency = (time.monotonic() - t0) * 1000
            cause = self._scrub(str(e) or e.__class__.__name__, credential)
            logger.warning("Upstream call with %s failed: %s", credential.label, cause)
            return UpstreamError(credential=credential.label, cause=cause, latency_ms=latency)

        content = extract_content(data) if isinstance(data, dict) else ""
        if not content:
            return UpstreamError(
                credential=credential.label,
                cause="No assistant message in response",
                status_code=resp.status_code,
                latency_ms=latency,
            )

        return UpstreamResponse(
            content=content,
            data=data,
            credential=credential.label,
            status_code=resp.status_code,
            latency_ms=latency,
        )
