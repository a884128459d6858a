"""
Usage stores, chosen by storage.backend in config.yaml.

    storage:
      backend: redis
      redis_url: ${REDIS_URL}
      redis_timeout: 5

Each backend name maps to a loader (imported on first use, so redis is only
needed when it is selected) and to the storage: keys its constructor reads.
"""

from .base import UsageStore

DEFAULT_SQLITE_PATH = "./data/usage.db"


def _sqlite():
    from .sqlite_store import SQLiteUsageStore
    return SQLiteUsageStore


def _redis():
    from .redis_store import RedisUsageStore
    return RedisUsageStore


def _sqlite_settings(storage_cfg: dict) -> dict:
    return {"path": storage_cfg.get("sqlite_path") or DEFAULT_SQLITE_PATH}


def _redis_settings(storage_cfg: dict) -> dict:
    settings = {"url": storage_cfg.get("redis_url") or ""}
    timeout = storage_cfg.get("redis_timeout")
    if timeout not in (None, ""):
        try:
            settings["timeout"] = float(timeout)
        except (TypeError, ValueError):
            raise ValueError(f"storage.redis_timeout must be a number of seconds, got {timeout!r}") from None
        if settings["timeout"] <= 0:
            raise ValueError(f"storage.redis_timeout must be positive, got {timeout!r}")
    return settings


# name -> (loader, settings from the storage: block)
BACKENDS = {
    "sqlite": (_sqlite, _sqlite_settings),
    "redis": (_redis, _redis_settings),
}


def make_store(backend_type: str, **kwargs) -> UsageStore:
    """Build a store by backend name; kwargs go to its constructor."""
    entry = BACKENDS.get(backend_type)
    if entry is None:
        raise ValueError(
            f"Unknown usage store: '{backend_type}'. Available: {', '.join(sorted(BACKENDS))}"
        )
    loader, _ = entry
    return loader()(**kwargs)


def store_from_config(cfg: dict) -> UsageStore:
    storage_cfg = cfg.get("storage") or {}
    backend_type = storage_cfg.get("backend") or "sqlite"
    entry = BACKENDS.get(backend_type)
    if entry is None:
        return make_store(backend_type)
    _, settings = entry
    return make_store(backend_type, **settings(storage_cfg))


__all__ = ["BACKENDS", "UsageStore", "make_store", "store_from_config"]
