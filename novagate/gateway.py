"""
Gateway: the core of novagate.
Validates a chat request, checks the caller's quota, forwards through the
failover dispatcher, and only charges quota when a reply actually came back.

Every caller-visible error is produced here; the tracker, dispatcher and
client below only return typed results.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from novagate.upstream.base import AllCredentialsExhausted, NoCredentialsAvailable
from novagate.upstream.dispatcher import FailoverDispatcher
from novagate.usage import UsageTracker

logger = logging.getLogger(__name__)

VALID_ROLES = ("system", "user", "assistant")

NO_MESSAGES = "No messages provided"
INVALID_MESSAGE = "Invalid message format"
INVALID_MAX_TOKENS = "max_tokens must be a positive integer"
DEFAULT_QUOTA_MESSAGE = "AI usage limit reached. Get full access when we launch."
DEFAULT_ERROR_MESSAGE = "Some internal error occurred. Please try again later."
DEFAULT_HISTORY_LIMIT = 5

# Outcomes
RESPONDED = "responded"
BAD_REQUEST = "bad_request"
QUOTA_EXCEEDED = "quota_exceeded"
SERVICE_UNAVAILABLE = "service_unavailable"
INTERNAL_ERROR = "internal_error"


@dataclass
class GatewayResponse:
    """What the HTTP layer sends back: status + {role, content}."""
    status_code: int
    payload: dict = field(default_factory=dict)
    outcome: str = RESPONDED

    @classmethod
    def error(cls, status_code: int, content: str, outcome: str) -> "GatewayResponse":
        return cls(status_code=status_code, payload={"role": "error", "content": content}, outcome=outcome)


def validate_messages(messages) -> str | None:
    """Return an error message, or None if the conversation is usable."""
    if not isinstance(messages, list) or not messages:
        return NO_MESSAGES
    for msg in messages:
        if not isinstance(msg, dict):
            return INVALID_MESSAGE
        if msg.get("role") not in VALID_ROLES:
            return INVALID_MESSAGE
        if not isinstance(msg.get("content"), str):
            return INVALID_MESSAGE
    return None


def parse_max_tokens(body: dict) -> tuple[int | None, bool]:
    """Read max_tokens (or maxTokens). Returns (value, ok)."""
    raw = body.get("max_tokens")
    if raw is None:
        raw = body.get("maxTokens")
    if raw is None:
        return None, True
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
        return None, False
    return raw, True


class Gateway:
    """Request pipeline: validate → quota check → augment → dispatch → commit."""

    def __init__(
        self,
        tracker: UsageTracker,
        dispatcher: FailoverDispatcher,
        system_prompt: str = "",
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        quota_message: str = DEFAULT_QUOTA_MESSAGE,
        error_message: str = DEFAULT_ERROR_MESSAGE,
    ):
        self.tracker = tracker
        self.dispatcher = dispatcher
        self.system_prompt = system_prompt
        self.history_limit = history_limit
        self.quota_message = quota_message
        self.error_message = error_message

    @classmethod
    def from_config(cls, tracker: UsageTracker, dispatcher: FailoverDispatcher, cfg: dict) -> "Gateway":
        g_cfg = cfg.get("gateway", {})
        return cls(
            tracker,
            dispatcher,
            system_prompt=g_cfg.get("system_prompt", ""),
            history_limit=int(g_cfg.get("history_limit", DEFAULT_HISTORY_LIMIT)),
            quota_message=cfg.get("quota", {}).get("message", DEFAULT_QUOTA_MESSAGE),
            error_message=g_cfg.get("error_message", DEFAULT_ERROR_MESSAGE),
        )

    def augment(self, messages: list[dict]) -> list[dict]:
        """Prepend the system prompt and keep only the newest turns."""
        recent = messages[-self.history_limit:] if self.history_limit > 0 else list(messages)
        history = [{"role": m["role"], "content": m["content"]} for m in recent]
        if not self.system_prompt:
            return history
        return [{"role": "system", "content": self.system_prompt}] + history

    async def handle(self, body, client_id: str) -> GatewayResponse:
        """Run one chat request through the whole pipeline."""
        if not isinstance(body, dict):
            return GatewayResponse.error(400, NO_MESSAGES, BAD_REQUEST)

        problem = validate_messages(body.get("messages"))
        if problem:
            logger.info("Rejected request from %s: %s", client_id, problem)
            return GatewayResponse.error(400, problem, BAD_REQUEST)

        max_tokens, ok = parse_max_tokens(body)
        if not ok:
            return GatewayResponse.error(400, INVALID_MAX_TOKENS, BAD_REQUEST)

        try:
            decision = await asyncio.to_thread(self.tracker.check_and_reserve, client_id)
        except Exception:
            logger.exception("Usage store check failed for %s", client_id)
            return GatewayResponse.error(500, self.error_message, INTERNAL_ERROR)

        if not decision.allowed:
            return GatewayResponse.error(429, self.quota_message, QUOTA_EXCEEDED)

        chat_history = self.augment(body["messages"])
        result = await self.dispatcher.dispatch(chat_history, max_tokens)

        if isinstance(result, AllCredentialsExhausted):
            if isinstance(result, NoCredentialsAvailable):
                logger.error("No credentials configured; request from %s not served", client_id)
            else:
                logger.error("Request from %s failed on every credential: %s", client_id, result.summary)
            return GatewayResponse.error(500, self.error_message, SERVICE_UNAVAILABLE)

        try:
            await asyncio.to_thread(self.tracker.commit, client_id, decision.is_new_window)
        except Exception:
            # Reply still goes out uncharged.
            logger.exception("Usage commit failed for %s; request not charged", client_id)

        return GatewayResponse(status_code=200, payload=result.message, outcome=RESPONDED)
