"""
Upstream access for novagate.
One client talks to the provider; the dispatcher rotates credentials over it.
"""
from novagate.upstream.base import (
    AllCredentialsExhausted,
    NoCredentialsAvailable,
    UpstreamError,
    UpstreamResponse,
)
from novagate.upstream.dispatcher import FailoverDispatcher
from novagate.upstream.openrouter import OpenRouterClient

__all__ = [
    "AllCredentialsExhausted",
    "NoCredentialsAvailable",
    "UpstreamError",
    "UpstreamResponse",
    "FailoverDispatcher",
    "OpenRouterClient",
]
