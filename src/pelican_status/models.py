"""Data model shared by the aggregation pipeline and its consumers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class ServerStatus(str, Enum):
    """Closed set of display states a server record can carry."""

    ONLINE = "online"
    OFFLINE = "offline"
    STARTING = "starting"
    STOPPING = "stopping"
    INSTALLING = "installing"
    UNKNOWN = "unknown"


def unwrap_attributes(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return ``payload["attributes"]`` when present, else the payload."""
    attributes = payload.get("attributes")
    if isinstance(attributes, Mapping):
        return attributes
    return payload


@dataclass(frozen=True)
class InventoryEntry:
    """One server as listed by the panel's Application API."""

    id: int
    uuid: Optional[str]
    name: str
    description: str
    status: Optional[str]
    external_id: Optional[str]
    egg_id: Optional[int]
    is_installed: bool
    updated_at: str
    image: str = "unknown"
    environment: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "InventoryEntry":
        """Build an entry from either the wrapped or the flat JSON shape."""
        data = unwrap_attributes(payload)
        container = data.get("container")
        if not isinstance(container, Mapping):
            container = {}
        environment = container.get("environment")
        if not isinstance(environment, Mapping):
            environment = {}

        server_id = _as_int(data.get("id")) or 0
        uuid = data.get("uuid")
        return cls(
            id=server_id,
            uuid=uuid if isinstance(uuid, str) and uuid else None,
            name=_as_text(data.get("name")) or "Unknown Server",
            description=_as_text(data.get("description")),
            status=_as_text(data.get("status")) or None,
            external_id=_as_text(data.get("external_id")) or None,
            egg_id=_as_int(data.get("egg")),
            is_installed=container.get("installed") in (1, True),
            updated_at=(
                _as_text(data.get("updated_at"))
                or datetime.now(timezone.utc).isoformat()
            ),
            image=_as_text(container.get("image")) or "unknown",
            environment={
                str(key): str(value)
                for key, value in environment.items()
                if value is not None
            },
        )


@dataclass(frozen=True)
class Capability:
    """Resolved egg data for one capability reference."""

    id: int
    uuid: Optional[str]
    name: str
    description: str = ""
    tags: Tuple[str, ...] = ()
    probe_eligible: bool = False


@dataclass(frozen=True)
class PlayerSnapshot:
    """Occupancy reported by a protocol probe."""

    online: int
    max: int
    names: Optional[List[str]] = None


@dataclass
class ServerRecord:
    """Display-ready state of one visible server."""

    id: int
    uuid: str
    name: str
    description: str
    status: ServerStatus
    metadata: Dict[str, str]
    is_installed: bool
    updated_at: str
    image: str = "unknown"
    domain: Optional[str] = None
    subdomain: Optional[str] = None
    group: Optional[str] = None
    subgroup: Optional[str] = None
    can_start: bool = False
    egg_id: Optional[int] = None
    egg_uuid: Optional[str] = None
    players: Optional[int] = None
    max_players: Optional[int] = None
    player_list: Optional[List[str]] = None

    def apply_players(self, snapshot: PlayerSnapshot) -> None:
        self.players = snapshot.online
        self.max_players = snapshot.max
        self.player_list = (
            list(snapshot.names) if snapshot.names is not None else None
        )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys the dashboard consumes.

        Optional fields that are unset are omitted rather than sent as null.
        """
        payload: Dict[str, Any] = {
            "id": self.id,
            "uuid": self.uuid,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "metadata": dict(self.metadata),
            "image": self.image,
            "isInstalled": self.is_installed,
            "updatedAt": self.updated_at,
            "canStart": self.can_start,
        }
        optional = {
            "domain": self.domain,
            "subdomain": self.subdomain,
            "group": self.group,
            "subgroup": self.subgroup,
            "eggId": self.egg_id,
            "eggUuid": self.egg_uuid,
            "players": self.players,
            "maxPlayers": self.max_players,
            "playerList": self.player_list,
        }
        for key, value in optional.items():
            if value is not None:
                payload[key] = value
        return payload


@dataclass(frozen=True)
class AggregationResult:
    """Outcome of one aggregation cycle."""

    servers: List[ServerRecord]
    timestamp: datetime

    def to_payload(self) -> Dict[str, Any]:
        return {
            "servers": [server.to_payload() for server in self.servers],
            "timestamp": self.timestamp.isoformat(),
        }


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)
