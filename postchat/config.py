from __future__ import annotations

"""Configuration handling for the chat client.

Values come from an optional JSON file at ``~/.config/postchat/config.json``
and are overridden by environment variables.  Only the API base URL is
required by the server contract; the socket endpoint is derived from it when
not given explicitly, and every value has a local development default.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Mapping
import json
import logging
import os

CFG_PATH = Path.home() / ".config" / "postchat" / "config.json"

DEFAULT_API_BASE_URL = "http://localhost:3000/api/v1"
DEFAULT_SOCKET_URL = "http://localhost:3000"
API_PREFIX = "/api/v1"

ENV_API_BASE_URL = "POSTCHAT_API_BASE_URL"
ENV_SOCKET_URL = "POSTCHAT_SOCKET_URL"
ENV_LOG_LEVEL = "POSTCHAT_LOG_LEVEL"


@dataclass
class ReconnectConfig:
    """Reconnect tuning for the socket.

    ``builtin_*`` values are handed to the Socket.IO client, the ``manual_*``
    values drive the backoff applied on top of it.
    """

    builtin_attempts: int = 5
    builtin_delay: float = 1.0
    builtin_delay_max: float = 5.0
    handshake_timeout: float = 20.0
    manual_attempts: int = 5
    manual_base_delay: float = 1.0
    manual_max_delay: float = 10.0


@dataclass
class ClientConfig:
    api_base_url: str = DEFAULT_API_BASE_URL
    socket_url: str | None = None
    log_level: str = "INFO"
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)


def _reconnect_from(data, path: Path) -> ReconnectConfig:
    if not isinstance(data, dict):
        return ReconnectConfig()
    known = {f.name for f in fields(ReconnectConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logging.warning("Ignoring unknown reconnect keys in %s: %s", path, ", ".join(unknown))
    return ReconnectConfig(**{k: v for k, v in data.items() if k in known})


def load_config(
    path: Path | None = None, environ: Mapping[str, str] | None = None
) -> ClientConfig:
    path = path or CFG_PATH
    env = os.environ if environ is None else environ
    cfg = ClientConfig()
    if path.exists():
        try:
            data = json.loads(path.read_text())
        except (json.JSONDecodeError, OSError):
            logging.warning("Invalid config in %s, using defaults", path)
            data = {}
        if isinstance(data, dict):
            cfg = ClientConfig(
                api_base_url=data.get("api_base_url") or DEFAULT_API_BASE_URL,
                socket_url=data.get("socket_url"),
                log_level=data.get("log_level") or "INFO",
                reconnect=_reconnect_from(data.get("reconnect"), path),
            )
    if env.get(ENV_API_BASE_URL):
        cfg.api_base_url = env[ENV_API_BASE_URL]
    if env.get(ENV_SOCKET_URL):
        cfg.socket_url = env[ENV_SOCKET_URL]
    if env.get(ENV_LOG_LEVEL):
        cfg.log_level = env[ENV_LOG_LEVEL].upper()
    return cfg


def save_config(cfg: ClientConfig, path: Path | None = None) -> None:
    path = path or CFG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2))


def resolve_socket_url(cfg: ClientConfig | None) -> str:
    """Return the socket endpoint for ``cfg``.

    An explicit ``socket_url`` wins; otherwise the API base URL is used with
    its ``/api/v1`` suffix removed.  Any problem reading the configuration
    yields :data:`DEFAULT_SOCKET_URL`; this function never raises.
    """
    try:
        if cfg is None:
            return DEFAULT_SOCKET_URL
        if cfg.socket_url:
            return cfg.socket_url
        base = (cfg.api_base_url or "").replace(API_PREFIX, "").rstrip("/")
        return base or DEFAULT_SOCKET_URL
    except Exception as exc:
        logging.warning("Could not resolve socket url, using default: %s", exc)
        return DEFAULT_SOCKET_URL
