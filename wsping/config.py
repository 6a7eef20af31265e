"""Process-wide server configuration loaded from the environment."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_PATH = "/ping"
DEFAULT_READ_BUFFER = 1024
DEFAULT_CONFIG_TIMEOUT_MS = 30_000
DEFAULT_LIVENESS_DEADLINE_MS = 1000
PROBER_KINDS = ("http", "fake")

# QTimer periods are signed 32-bit milliseconds
MAX_TIMER_MS = 2**31 - 1


@dataclass(frozen=True)
class ServerConfig:
    """Upgrade and session settings shared by every connection.

    Built once at startup and never mutated afterwards.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    path: str = DEFAULT_PATH
    allowed_origins: tuple[str, ...] = ()  # Empty allows any origin
    read_buffer_size: int = DEFAULT_READ_BUFFER
    config_timeout_ms: int = DEFAULT_CONFIG_TIMEOUT_MS  # 0 waits forever
    liveness_deadline_ms: int = DEFAULT_LIVENESS_DEADLINE_MS
    prober: str = "http"

    def __post_init__(self):
        """Reject values the server cannot run with."""
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be between 0 and 65535, got {self.port}")
        if not self.path.startswith("/"):
            raise ValueError(f"path must start with '/', got {self.path!r}")
        if self.read_buffer_size <= 0:
            raise ValueError("read_buffer_size must be positive")
        if not 0 <= self.config_timeout_ms <= MAX_TIMER_MS:
            raise ValueError(f"config_timeout_ms must be between 0 and {MAX_TIMER_MS}")
        if not 0 < self.liveness_deadline_ms <= MAX_TIMER_MS:
            raise ValueError(f"liveness_deadline_ms must be between 1 and {MAX_TIMER_MS}")
        if self.prober not in PROBER_KINDS:
            raise ValueError(f"prober must be one of {PROBER_KINDS}, got {self.prober!r}")

    def origin_allowed(self, origin: str) -> bool:
        """Return True if a browser origin may open a session."""
        if not self.allowed_origins:
            return True
        return origin in self.allowed_origins


def _int_from_env(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_server_config(environ: Mapping[str, str] | None = None) -> ServerConfig:
    """Build a ServerConfig from WSPING_* environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        Validated ServerConfig

    Raises:
        ValueError: If a variable is malformed or out of range
    """
    if environ is None:
        environ = os.environ

    origins = tuple(
        origin.strip()
        for origin in environ.get("WSPING_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    )

    config = ServerConfig(
        host=environ.get("WSPING_HOST", DEFAULT_HOST).strip() or DEFAULT_HOST,
        port=_int_from_env(environ, "WSPING_PORT", DEFAULT_PORT),
        path=environ.get("WSPING_PATH", DEFAULT_PATH).strip() or DEFAULT_PATH,
        allowed_origins=origins,
        read_buffer_size=_int_from_env(environ, "WSPING_READ_BUFFER", DEFAULT_READ_BUFFER),
        config_timeout_ms=_int_from_env(
            environ, "WSPING_CONFIG_TIMEOUT_MS", DEFAULT_CONFIG_TIMEOUT_MS
        ),
        liveness_deadline_ms=_int_from_env(
            environ, "WSPING_LIVENESS_DEADLINE_MS", DEFAULT_LIVENESS_DEADLINE_MS
        ),
        prober=environ.get("WSPING_PROBER", "http").strip().lower() or "http",
    )

    logger.debug("Server config loaded: %s", config)
    return config
