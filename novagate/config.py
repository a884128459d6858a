"""
Config loader for novagate.

config.yaml is read once and cached. String values may reference the
environment (and .env) so API keys and store URLs stay out of the file:

    ${AI_API_KEY_1}            empty string when unset
    ${REDIS_TIMEOUT:-5}        "5" when unset or empty

The file location is NOVAGATE_CONFIG when set, else config.yaml at the repo
root. It is looked up on each load, not at import.
"""

import os
import re
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")

# Peers allowed to set X-Forwarded-For when nothing is configured.
DEFAULT_TRUSTED_PROXIES = ["127.0.0.1"]

_config: dict | None = None


def config_path() -> Path:
    return Path(os.environ.get("NOVAGATE_CONFIG") or DEFAULT_CONFIG_PATH)


def _expand(text: str) -> str:
    """Substitute ${NAME} / ${NAME:-fallback} references in one string."""
    def sub(match):
        value = os.environ.get(match.group(1), "")
        if not value and match.group(2) is not None:
            return match.group(2)
        return value

    return _ENV_REF.sub(sub, text)


def _resolve(node):
    if isinstance(node, dict):
        return {key: _resolve(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_resolve(item) for item in node]
    if isinstance(node, str):
        return _expand(node)
    return node


def load_config(path: Path | str | None = None) -> dict:
    """Load, resolve and cache the config. Later calls return the cache."""
    global _config
    if _config is not None:
        return _config

    source = Path(path) if path else config_path()
    if not source.is_file():
        raise FileNotFoundError(f"Config not found: {source}")

    raw = yaml.safe_load(source.read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config {source} must be a mapping at the top level")

    _config = _resolve(raw)
    return _config


def get_config() -> dict:
    return _config if _config is not None else load_config()


def reset_config():
    """Drop the cached config so the next get_config() re-reads the file."""
    global _config
    _config = None


def trusted_proxies(cfg: dict) -> list[str]:
    """
    Peers whose X-Forwarded-For is believed (server.trusted_proxies).

    Accepts a YAML list or a comma-separated string. An empty list means
    no proxy is trusted and every caller is identified by its socket peer.
    """
    value = cfg.get("server", {}).get("trusted_proxies", DEFAULT_TRUSTED_PROXIES)
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]
