"""
FastAPI application — the novagate entry point.

  POST /chat    chat request in, {role, content} out
  GET  /usage   the caller's own quota state
  GET  /health  credential count, store reachability, model
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from novagate.config import get_config
from novagate.credentials import CredentialPool
from novagate.gateway import NO_MESSAGES, Gateway
from novagate.storage.backends import UsageStore, store_from_config
from novagate.upstream.dispatcher import FailoverDispatcher
from novagate.upstream.openrouter import OpenRouterClient
from novagate.usage import UsageTracker

logger = logging.getLogger(__name__)

# How often an in-flight request checks whether its caller hung up.
DISCONNECT_POLL_SECONDS = 0.5

# ---------------------------------------------------------------------------
# Globals — initialized at startup
# ---------------------------------------------------------------------------
usage_store: UsageStore | None = None
usage_tracker: UsageTracker | None = None
credential_pool: CredentialPool | None = None
dispatcher: FailoverDispatcher | None = None
gateway: Gateway | None = None


def _setup_logging(cfg: dict):
    log_cfg = cfg.get("logging", {})
    level = getattr(logging, log_cfg.get("level", "INFO").upper(), logging.INFO)
    log_file = log_cfg.get("file")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        from pathlib import Path
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def _cors_origins() -> list[str]:
    try:
        return get_config().get("server", {}).get("cors_origins", ["*"])
    except FileNotFoundError:
        return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    global usage_store, usage_tracker, credential_pool, dispatcher, gateway

    cfg = get_config()
    _setup_logging(cfg)

    usage_store = store_from_config(cfg)
    usage_tracker = UsageTracker.from_config(usage_store, cfg)

    credential_pool = CredentialPool.from_config(cfg)
    client = OpenRouterClient.from_config(cfg)
    dispatcher = FailoverDispatcher(credential_pool, client)

    gateway = Gateway.from_config(usage_tracker, dispatcher, cfg)

    logger.info(
        "novagate started — upstream %s, model %s, %d credential(s)",
        client.url, client.model or "<unset>", credential_pool.size(),
    )
    logger.info(
        "Quota: %d requests per %ds window (store: %s)",
        usage_tracker.limit, usage_tracker.window_seconds, usage_store.name,
    )

    yield

    logger.info("novagate shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="novagate",
    description="Chat gateway with credential failover and per-client quota.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


def client_id_for(request: Request) -> str:
    """
    Caller identity for quota: the socket peer as the ASGI server reports it.

    X-Forwarded-For is never read here. The server applies it (uvicorn
    proxy_headers) only when the peer is listed in server.trusted_proxies,
    so an untrusted caller cannot choose its own quota key.
    """
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def _run_until_disconnect(request: Request, coro):
    """
    Await coro, cancelling it if the caller disconnects first.
    Returns None when cancelled that way.
    """
    task = asyncio.create_task(coro)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                return None
    except asyncio.CancelledError:
        task.cancel()
        raise


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.post("/chat")
async def chat(request: Request):
    """
    Main endpoint. Accepts {messages: [...]} and answers with
    {role: "assistant", content} or {role: "error", content}.
    """
    client_id = client_id_for(request)
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"role": "error", "content": NO_MESSAGES}, status_code=400)

    result = await _run_until_disconnect(request, gateway.handle(body, client_id))
    if result is None:
        logger.info("Client %s disconnected; upstream call aborted, nothing charged", client_id)
        return Response(status_code=499)

    return JSONResponse(result.payload, status_code=result.status_code)


@app.get("/usage")
async def usage(request: Request):
    """Quota state for whoever is asking."""
    client_id = client_id_for(request)
    try:
        data = await asyncio.to_thread(usage_tracker.usage, client_id)
    except Exception:
        logger.exception("Usage lookup failed for %s", client_id)
        return JSONResponse({"error": "usage store unavailable"}, status_code=503)
    return JSONResponse({"client": client_id, **data})


@app.get("/health")
async def health():
    """Liveness plus a cheap look at the things a request depends on."""
    store_ok = await asyncio.to_thread(usage_store.ping) if usage_store else False
    n_keys = credential_pool.size() if credential_pool else 0
    return JSONResponse({
        "ok": store_ok and n_keys > 0,
        "credentials": n_keys,
        "store": store_ok,
        "model": dispatcher.client.model if dispatcher else "",
    })
