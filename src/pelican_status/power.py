"""Power control for a single server through the Client API."""

from __future__ import annotations

import logging
from typing import FrozenSet, Optional, Protocol

from pelican_status.clients.account_client import AccountClient
from pelican_status.config import Settings

_LOGGER = logging.getLogger(__name__)

POWER_ACTIONS: FrozenSet[str] = frozenset({"start", "stop", "restart", "kill"})


class _PowerTarget(Protocol):
    def send_power_signal(self, uuid: str, signal: str) -> None: ...


class PowerController:
    """Validate and forward power signals."""

    def __init__(self, client: _PowerTarget) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "PowerController":
        return cls(AccountClient.from_settings(settings))

    def send(self, uuid: str, action: Optional[str]) -> str:
        """Send ``action`` to server ``uuid`` and return the action sent.

        Raises ``ValueError`` for unsupported actions and lets panel errors
        (``UpstreamError``) propagate to the caller.
        """
        if action not in POWER_ACTIONS:
            raise ValueError(
                "Invalid action. Must be start, stop, restart, or kill."
            )
        if not uuid:
            raise ValueError("Server uuid is required.")

        _LOGGER.info("Sending %s signal to server %s", action, uuid)
        self._client.send_power_signal(uuid, action)
        return action
