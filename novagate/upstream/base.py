"""
Upstream result types.

The client and dispatcher never raise for expected upstream failures; they
return one of these so the gateway can decide what the caller sees.
Credentials appear by label only, never by secret.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class UpstreamResponse:
    """A successful chat completion."""
    content: str
    data: dict = field(default_factory=dict)
    credential: str = ""
    status_code: int = 200
    latency_ms: float = 0.0
    ok: bool = True

    @property
    def message(self) -> dict:
        return {"role": "assistant", "content": self.content}


@dataclass
class UpstreamError:
    """One credential's call failed (transport, status, or malformed reply)."""
    credential: str
    cause: str
    status_code: int | None = None
    latency_ms: float = 0.0
    ok: bool = False

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.credential}: HTTP {self.status_code}: {self.cause}"
        return f"{self.credential}: {self.cause}"


@dataclass
class AllCredentialsExhausted:
    """Every credential in the pool was tried and failed."""
    errors: list[UpstreamError] = field(default_factory=list)
    ok: bool = False

    @property
    def causes(self) -> list[str]:
        return [str(e) for e in self.errors]

    @property
    def summary(self) -> str:
        return "; ".join(self.causes) if self.errors else "no credentials available"


@dataclass
class NoCredentialsAvailable(AllCredentialsExhausted):
    """The pool is empty — a configuration problem, not an upstream one."""


def extract_content(data: dict) -> str:
    """Pull assistant content out of an OpenAI-format completion body."""
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content", "")
    return content if isinstance(content, str) else ""
