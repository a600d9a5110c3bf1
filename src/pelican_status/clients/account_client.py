"""Client for the panel's Client API (live resources and power signals)."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from pelican_status.clients.base_client import BaseClient
from pelican_status.config import Settings
from pelican_status.net.rate_limiter import RateLimiter

RESOURCES_PATH = "/api/client/servers/{uuid}/resources"
POWER_PATH = "/api/client/servers/{uuid}/power"


class AccountClient(BaseClient):
    """Per-server endpoints that require a user-scoped client key."""

    def get_resources(self, uuid: str, *, timeout: Optional[float] = None) -> Any:
        """Return the resources document for ``uuid``."""
        return self._get_json(
            RESOURCES_PATH.format(uuid=uuid),
            timeout=timeout,
            name=f"client.resources({uuid})",
        )

    def send_power_signal(self, uuid: str, signal: str) -> None:
        """Ask the panel to apply ``signal`` (start/stop/restart/kill)."""
        self._post_json(
            POWER_PATH.format(uuid=uuid),
            {"signal": signal},
            name=f"client.power({uuid}, {signal})",
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "AccountClient":
        """Build a client, raising ``ConfigurationError`` when unconfigured."""
        settings.require_client_api()
        assert settings.panel_url is not None
        assert settings.client_api_key is not None
        return cls(
            settings.panel_url,
            settings.client_api_key,
            rate_limiter or RateLimiter.per_minute(settings.rate_limit_per_minute),
            session=session,
            logger=logger,
            timeout=settings.http_timeout_seconds,
        )
