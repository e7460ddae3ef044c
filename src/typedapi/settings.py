from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from TYPEDAPI_* environment variables."""

    url: str = field(default_factory=lambda: os.environ.get("TYPEDAPI_URL", "http://127.0.0.1:8000/"))
    timeout_seconds: float = field(default_factory=lambda: _env_float("TYPEDAPI_TIMEOUT_SECONDS", 30.0))
    log_level: str = field(default_factory=lambda: os.environ.get("TYPEDAPI_LOG_LEVEL", "INFO").upper())
    expose_endpoints: bool = field(default_factory=lambda: _env_bool("TYPEDAPI_EXPOSE_ENDPOINTS", True))


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for a server process. Library code never calls this."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
