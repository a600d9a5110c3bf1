"""Client for the panel's Application API (inventory and egg metadata)."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from pelican_status.clients.base_client import BaseClient
from pelican_status.config import Settings
from pelican_status.net.rate_limiter import RateLimiter

SERVERS_PATH = "/api/application/servers"
EGG_PATH = "/api/application/eggs/{egg_id}"


class ApplicationClient(BaseClient):
    """Read-only wrapper around ``/api/application`` endpoints."""

    def get_servers_page(self, page: int = 1, per_page: int = 100) -> Any:
        """Fetch one page of the server inventory envelope."""
        return self._get_json(
            SERVERS_PATH,
            params={"page": page, "per_page": per_page},
            name=f"application.servers(page={page})",
        )

    def get_egg(self, egg_id: int) -> Any:
        """Fetch egg details for a capability reference."""
        return self._get_json(
            EGG_PATH.format(egg_id=egg_id),
            name=f"application.egg({egg_id})",
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "ApplicationClient":
        """Build a client, raising ``ConfigurationError`` when unconfigured."""
        settings.require_panel()
        assert settings.panel_url is not None
        assert settings.application_api_key is not None
        return cls(
            settings.panel_url,
            settings.application_api_key,
            rate_limiter or RateLimiter.per_minute(settings.rate_limit_per_minute),
            session=session,
            logger=logger,
            timeout=settings.http_timeout_seconds,
        )
