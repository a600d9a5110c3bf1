"""Direct Minecraft status queries for player counts."""

from __future__ import annotations

import logging
import struct
from typing import Any, Callable, List, Mapping, Optional, Sequence

from mcstatus import JavaServer

from pelican_status.metadata import DOMAIN_KEY, PORT_KEY, SUBDOMAIN_KEY
from pelican_status.models import PlayerSnapshot

_LOGGER = logging.getLogger(__name__)

DEFAULT_GAME_PORT = 25565
DEFAULT_TIMEOUT_MS = 2000

GAME_PORT_ENV_KEYS: Sequence[str] = ("SERVER_PORT", "GAME_PORT")
GENERIC_PORT_ENV_KEYS: Sequence[str] = ("PORT",)

# Socket and timeout errors, plus what a malformed status reply can raise.
PROBE_ERRORS = (OSError, ValueError, KeyError, TypeError, struct.error)

ServerFactory = Callable[..., Any]


def select_probe_host(metadata: Mapping[str, str]) -> Optional[str]:
    """Prefer the server's own address (subdomain) over the shared domain."""
    for key in (SUBDOMAIN_KEY, DOMAIN_KEY):
        value = (metadata.get(key) or "").strip()
        if value:
            return value
    return None


def select_probe_port(
    environment: Mapping[str, str],
    metadata: Optional[Mapping[str, str]] = None,
) -> int:
    """Pick the query port.

    Order: a game port from the container environment, then a generic port
    hint (``port`` tag or ``PORT`` variable), then the protocol default.
    """
    for key in GAME_PORT_ENV_KEYS:
        port = _parse_port(environment.get(key))
        if port is not None:
            return port

    hints: List[Optional[str]] = [(metadata or {}).get(PORT_KEY)]
    hints.extend(environment.get(key) for key in GENERIC_PORT_ENV_KEYS)
    for hint in hints:
        port = _parse_port(hint)
        if port is not None:
            return port
    return DEFAULT_GAME_PORT


class ProtocolProber:
    """Query a server's status endpoint with a bounded timeout.

    The host is used verbatim: servers are built directly instead of through
    ``JavaServer.lookup`` so no SRV record is consulted.
    """

    def __init__(
        self,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        server_factory: Optional[ServerFactory] = None,
    ) -> None:
        self._timeout_seconds = timeout_ms / 1000.0
        self._server_factory = server_factory or JavaServer

    def probe(self, host: Optional[str], port: Optional[int] = None) -> Optional[PlayerSnapshot]:
        """Return the player snapshot, or None when the query fails."""
        if not host:
            _LOGGER.debug("No address to probe; skipping")
            return None

        target_port = port or DEFAULT_GAME_PORT
        try:
            server = self._server_factory(
                host, target_port, timeout=self._timeout_seconds
            )
            status = server.status(tries=1)
            return _snapshot_from_status(status)
        except PROBE_ERRORS as error:
            _LOGGER.warning(
                "Failed to query %s:%d: %s", host, target_port, error
            )
            return None


def _snapshot_from_status(status: Any) -> PlayerSnapshot:
    players = status.players
    names: Optional[List[str]] = None
    sample = getattr(players, "sample", None)
    if sample is not None:
        names = [
            str(player.name)
            for player in sample
            if getattr(player, "name", None) is not None
        ]
    return PlayerSnapshot(
        online=int(players.online),
        max=int(players.max),
        names=names,
    )


def _parse_port(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        port = int(str(raw).strip())
    except ValueError:
        return None
    if 0 < port < 65536:
        return port
    return None
