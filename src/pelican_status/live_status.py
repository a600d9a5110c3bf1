"""Best-effort lookup of a server's current runtime state."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

import requests

from pelican_status.errors import PanelError
from pelican_status.models import unwrap_attributes

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


class _ResourceSource(Protocol):
    def get_resources(self, uuid: str, *, timeout: Optional[float] = None) -> Any: ...


class LiveStatusFetcher:
    """Ask the Client API for ``current_state``; never raises.

    Without a client (no client API key configured) every lookup reports no
    data, which leaves records to fall back on their inventory status.
    """

    def __init__(
        self,
        client: Optional[_ResourceSource],
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds
        if client is None:
            _LOGGER.warning("Client API key not configured, skipping status fetch")

    def fetch(self, uuid: str) -> Optional[str]:
        if self._client is None:
            return None

        try:
            payload = self._client.get_resources(uuid, timeout=self._timeout_seconds)
        except (requests.RequestException, PanelError) as error:
            _LOGGER.warning("Failed to fetch status for %s: %s", uuid, error)
            return None

        if not isinstance(payload, Mapping):
            _LOGGER.warning("Resources response for %s is not an object", uuid)
            return None

        state = unwrap_attributes(payload).get("current_state")
        if isinstance(state, str) and state:
            return state
        return None
