"""Runtime settings for the status aggregator, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from pelican_status.errors import ConfigurationError
from pelican_status.utils.env import load_dotenv, truthy

PANEL_URL_KEY = "PELICAN_PANEL_URL"
APPLICATION_KEY_KEY = "PELICAN_API_KEY"
CLIENT_KEY_KEY = "PELICAN_CLIENT_API_KEY"

DEFAULT_PROBE_KEYWORD = "minecraft"
"""Game name whose eggs are eligible for a direct protocol probe."""

DEFAULT_PROBE_TIMEOUT_MS = 2000
DEFAULT_STATUS_TIMEOUT_MS = 5000
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_WORKERS = 16
DEFAULT_RATE_LIMIT_PER_MINUTE = 240


@dataclass(frozen=True)
class Settings:
    """Panel endpoint, credentials and tuning knobs for one process."""

    panel_url: Optional[str] = None
    application_api_key: Optional[str] = None
    client_api_key: Optional[str] = None
    probe_keyword: str = DEFAULT_PROBE_KEYWORD
    probe_enabled: bool = True
    probe_timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS
    status_timeout_ms: int = DEFAULT_STATUS_TIMEOUT_MS
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    page_size: int = DEFAULT_PAGE_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    rate_limit_per_minute: int = DEFAULT_RATE_LIMIT_PER_MINUTE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``environ`` (``os.environ`` after ``.env``)."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        panel_url = _optional(environ.get(PANEL_URL_KEY))
        if panel_url:
            panel_url = panel_url.rstrip("/")

        probe_flag = environ.get("PELICAN_ENABLE_PROBE")

        return cls(
            panel_url=panel_url,
            application_api_key=_optional(environ.get(APPLICATION_KEY_KEY)),
            client_api_key=_optional(environ.get(CLIENT_KEY_KEY)),
            probe_keyword=(
                _optional(environ.get("PELICAN_PROBE_KEYWORD"))
                or DEFAULT_PROBE_KEYWORD
            ),
            probe_enabled=True if probe_flag is None else truthy(probe_flag),
            probe_timeout_ms=_positive_int(
                environ, "PELICAN_PROBE_TIMEOUT_MS", DEFAULT_PROBE_TIMEOUT_MS
            ),
            status_timeout_ms=_positive_int(
                environ, "PELICAN_STATUS_TIMEOUT_MS", DEFAULT_STATUS_TIMEOUT_MS
            ),
            http_timeout_seconds=float(
                _positive_int(
                    environ,
                    "PELICAN_HTTP_TIMEOUT",
                    int(DEFAULT_HTTP_TIMEOUT_SECONDS),
                )
            ),
            page_size=_positive_int(
                environ, "PELICAN_PAGE_SIZE", DEFAULT_PAGE_SIZE
            ),
            max_workers=_positive_int(
                environ, "PELICAN_MAX_WORKERS", DEFAULT_MAX_WORKERS
            ),
            rate_limit_per_minute=_positive_int(
                environ,
                "PELICAN_RATE_LIMIT_PER_MINUTE",
                DEFAULT_RATE_LIMIT_PER_MINUTE,
            ),
        )

    def require_panel(self) -> None:
        """Raise ``ConfigurationError`` unless the Application API is usable."""
        missing: List[str] = []
        if not self.panel_url:
            missing.append(PANEL_URL_KEY)
        if not self.application_api_key:
            missing.append(APPLICATION_KEY_KEY)
        if missing:
            raise ConfigurationError(
                "Pelican Panel configuration is missing: " + ", ".join(missing)
            )

    def require_client_api(self) -> None:
        """Raise ``ConfigurationError`` unless the Client API is usable."""
        missing: List[str] = []
        if not self.panel_url:
            missing.append(PANEL_URL_KEY)
        if not self.client_api_key:
            missing.append(CLIENT_KEY_KEY)
        if missing:
            raise ConfigurationError(
                "Pelican Panel configuration is missing: " + ", ".join(missing)
            )

    @property
    def has_client_api(self) -> bool:
        return bool(self.panel_url and self.client_api_key)


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _positive_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = _optional(environ.get(key))
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as error:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from error
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value}")
    return value
