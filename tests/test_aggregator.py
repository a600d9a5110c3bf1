"""End-to-end tests for the aggregation cycle using in-memory panel fakes."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest
import requests

from pelican_status.aggregator import ServerAggregator
from pelican_status.capabilities import CapabilityResolver
from pelican_status.config import Settings
from pelican_status.errors import ConfigurationError, UpstreamError
from pelican_status.inventory import InventoryFetcher
from pelican_status.live_status import LiveStatusFetcher
from pelican_status.models import ServerStatus
from pelican_status.probe import ProtocolProber

FIXED_TIME = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class FakePanel:
    """Stands in for both panel clients."""

    def __init__(
        self,
        servers: List[Dict[str, Any]],
        *,
        eggs: Optional[Dict[int, Any]] = None,
        states: Optional[Dict[str, Any]] = None,
        inventory_error: Optional[Exception] = None,
    ) -> None:
        self.servers = servers
        self.eggs = eggs or {}
        self.states = states or {}
        self.inventory_error = inventory_error
        self.egg_calls: List[int] = []
        self.resource_calls: List[str] = []
        self._lock = threading.Lock()

    def get_servers_page(self, page: int = 1, per_page: int = 100) -> Any:
        if self.inventory_error is not None:
            raise self.inventory_error
        return {"object": "list", "data": self.servers}

    def get_egg(self, egg_id: int) -> Any:
        with self._lock:
            self.egg_calls.append(egg_id)
        egg = self.eggs[egg_id]
        if isinstance(egg, Exception):
            raise egg
        return {"attributes": egg}

    def get_resources(self, uuid: str, *, timeout: Optional[float] = None) -> Any:
        with self._lock:
            self.resource_calls.append(uuid)
        state = self.states.get(uuid)
        if isinstance(state, Exception):
            raise state
        return {"attributes": {"current_state": state}}


class FakeServerFactory:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.created: List[Tuple[str, int]] = []
        self.tries: List[int] = []
        self._lock = threading.Lock()

    def __call__(self, host: str, port: int, timeout: float) -> Any:
        with self._lock:
            self.created.append((host, port))
        error = self.error

        def status(tries: int = 3) -> Any:
            with self._lock:
                self.tries.append(tries)
            if error is not None:
                raise error
            players = SimpleNamespace(online=2, max=20, sample=[SimpleNamespace(name="alex"), SimpleNamespace(name="steve")])
            return SimpleNamespace(players=players)

        return SimpleNamespace(status=status)


def _server(server_id: int, external_id: Optional[str] = "display:true", *, status: Optional[str] = None, egg: int = 1, uuid: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    attributes: Dict[str, Any] = {
        "id": server_id,
        "uuid": uuid if uuid is not None else f"u{server_id}",
        "name": f"Server {server_id}",
        "description": "",
        "status": status,
        "external_id": external_id,
        "egg": egg,
        "container": {"installed": 1, "image": "java", "environment": {}},
        "updated_at": "2026-10-01T00:00:00+00:00",
    }
    attributes.update(extra)
    return {"attributes": attributes}


MINECRAFT_EGG = {"id": 1, "uuid": "egg-mc", "name": "Paper", "description": "Minecraft server"}
OTHER_EGG = {"id": 2, "uuid": "egg-rust", "name": "Rust", "description": "Survival"}


def _aggregator(panel: FakePanel, factory: Optional[FakeServerFactory] = None) -> ServerAggregator:
    prober = ProtocolProber(timeout_ms=2000, server_factory=factory or FakeServerFactory())
    return ServerAggregator(
        InventoryFetcher(panel),
        CapabilityResolver(panel),
        LiveStatusFetcher(panel),
        prober,
        clock=lambda: FIXED_TIME,
    )


def test_single_running_server_with_ineligible_egg() -> None:
    panel = FakePanel(
        [_server(1, "display:true", status="running", egg=2)],
        eggs={2: OTHER_EGG},
        states={"u1": "running"},
    )
    factory = FakeServerFactory()

    result = _aggregator(panel, factory).aggregate()

    assert len(result.servers) == 1
    record = result.servers[0]
    assert record.id == 1
    assert record.status is ServerStatus.ONLINE
    assert record.players is None
    assert "players" not in record.to_payload()
    assert factory.created == []
    assert result.timestamp == FIXED_TIME


def test_hidden_servers_never_appear_or_get_fetched() -> None:
    panel = FakePanel(
        [
            _server(1, "display:true"),
            _server(2, None),
            _server(3, "display:false,group:x"),
            _server(4, "display:TRUE"),
            _server(5, "group:survival"),
        ],
        eggs={1: OTHER_EGG},
        states={"u1": "offline"},
    )

    result = _aggregator(panel).aggregate()

    assert [record.id for record in result.servers] == [1]
    assert panel.resource_calls == ["u1"]


def test_shared_egg_is_resolved_once() -> None:
    panel = FakePanel(
        [_server(index, egg=7) for index in range(1, 6)],
        eggs={7: {**MINECRAFT_EGG, "id": 7}},
    )

    result = _aggregator(panel).aggregate()

    assert panel.egg_calls == [7]
    assert all(record.egg_uuid == "egg-mc" for record in result.servers)


def test_live_status_failure_is_isolated() -> None:
    states: Dict[str, Any] = {f"u{index}": "running" for index in range(1, 11)}
    states["u4"] = UpstreamError("Panel returned 502", status_code=502)
    panel = FakePanel(
        [_server(index, egg=2) for index in range(1, 11)],
        eggs={2: OTHER_EGG},
        states=states,
    )

    result = _aggregator(panel).aggregate()

    by_id = {record.id: record for record in result.servers}
    assert len(by_id) == 10
    assert by_id[4].status is ServerStatus.UNKNOWN
    assert all(
        record.status is ServerStatus.ONLINE
        for server_id, record in by_id.items()
        if server_id != 4
    )


def test_failed_live_status_is_unknown_despite_inventory_status() -> None:
    panel = FakePanel(
        [_server(1, status="installing", egg=2)],
        eggs={2: OTHER_EGG},
        states={"u1": requests.ConnectionError("refused")},
    )

    record = _aggregator(panel).aggregate().servers[0]

    assert record.status is ServerStatus.UNKNOWN
    assert panel.resource_calls == ["u1"]


def test_inventory_status_used_when_uuid_missing() -> None:
    panel = FakePanel([_server(1, status="installing", egg=2, uuid="")], eggs={2: OTHER_EGG})

    record = _aggregator(panel).aggregate().servers[0]

    assert record.status is ServerStatus.INSTALLING
    assert panel.resource_calls == []


def test_live_status_supersedes_inventory_status() -> None:
    panel = FakePanel(
        [_server(1, status="installing", egg=2)],
        eggs={2: OTHER_EGG},
        states={"u1": "stopping"},
    )

    assert _aggregator(panel).aggregate().servers[0].status is ServerStatus.STOPPING


def test_eligible_online_server_is_probed() -> None:
    panel = FakePanel(
        [
            _server(
                1,
                "display:true,domain:example.com,subdomain:mc.example.com,group:Survival",
                container={"installed": 1, "image": "java", "environment": {"SERVER_PORT": "25570"}},
            )
        ],
        eggs={1: MINECRAFT_EGG},
        states={"u1": "running"},
    )
    factory = FakeServerFactory()

    record = _aggregator(panel, factory).aggregate().servers[0]

    assert factory.created == [("mc.example.com", 25570)]
    assert factory.tries == [1]
    assert record.players == 2
    assert record.max_players == 20
    assert record.player_list == ["alex", "steve"]
    assert record.group == "Survival"
    assert record.to_payload()["playerList"] == ["alex", "steve"]


@pytest.mark.parametrize("state", ["offline", "starting", None])
def test_probe_requires_online_status(state: Optional[str]) -> None:
    panel = FakePanel(
        [_server(1, "display:true,domain:example.com")],
        eggs={1: MINECRAFT_EGG},
        states={"u1": state},
    )
    factory = FakeServerFactory()

    record = _aggregator(panel, factory).aggregate().servers[0]

    assert factory.created == []
    assert record.players is None


def test_probe_skipped_without_address() -> None:
    panel = FakePanel([_server(1)], eggs={1: MINECRAFT_EGG}, states={"u1": "running"})
    factory = FakeServerFactory()

    record = _aggregator(panel, factory).aggregate().servers[0]

    assert factory.created == []
    assert record.status is ServerStatus.ONLINE


def test_probe_timeout_keeps_record() -> None:
    panel = FakePanel(
        [_server(1, "display:true,domain:example.com"), _server(2, egg=2)],
        eggs={1: MINECRAFT_EGG, 2: OTHER_EGG},
        states={"u1": "running", "u2": "running"},
    )
    factory = FakeServerFactory(error=TimeoutError("timed out"))

    result = _aggregator(panel, factory).aggregate()

    assert [record.id for record in result.servers] == [1, 2]
    assert result.servers[0].players is None
    assert result.servers[0].status is ServerStatus.ONLINE


def test_failed_egg_lookup_keeps_servers() -> None:
    panel = FakePanel(
        [_server(1, "display:true,domain:example.com"), _server(2, "display:true,domain:example.com")],
        eggs={1: UpstreamError("Panel returned 404", status_code=404)},
        states={"u1": "running", "u2": "running"},
    )
    factory = FakeServerFactory()

    result = _aggregator(panel, factory).aggregate()

    assert len(result.servers) == 2
    assert all(record.egg_uuid is None for record in result.servers)
    assert factory.created == []


def test_inventory_failure_is_fatal_and_stops_downstream() -> None:
    panel = FakePanel(
        [_server(1)],
        eggs={1: MINECRAFT_EGG},
        inventory_error=UpstreamError("Panel returned 500", status_code=500),
    )

    with pytest.raises(UpstreamError) as excinfo:
        _aggregator(panel).aggregate()

    assert excinfo.value.status_code == 500
    assert panel.egg_calls == []
    assert panel.resource_calls == []


def test_record_fields_from_metadata_and_inventory() -> None:
    panel = FakePanel(
        [_server(1, "display:true,start:true,group:Modded,subgroup:ATM,extra:1", uuid="")],
        eggs={1: OTHER_EGG},
    )

    record = _aggregator(panel).aggregate().servers[0]

    assert record.uuid == "server-1"
    assert record.can_start is True
    assert record.subgroup == "ATM"
    assert record.metadata["extra"] == "1"
    assert record.status is ServerStatus.UNKNOWN
    assert panel.resource_calls == []


def test_empty_visible_set_completes() -> None:
    panel = FakePanel([_server(1, "display:false")])

    result = _aggregator(panel).aggregate()

    assert result.servers == []
    assert panel.egg_calls == []


def test_overlapping_cycles_are_serialized() -> None:
    active = {"now": 0, "peak": 0}
    lock = threading.Lock()

    class SlowInventory:
        def fetch(self) -> List[Any]:
            with lock:
                active["now"] += 1
                active["peak"] = max(active["peak"], active["now"])
            time.sleep(0.05)
            with lock:
                active["now"] -= 1
            return []

    panel = FakePanel([])
    aggregator = ServerAggregator(
        SlowInventory(),  # type: ignore[arg-type]
        CapabilityResolver(panel),
        LiveStatusFetcher(panel),
    )

    threads = [threading.Thread(target=aggregator.aggregate) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert active["peak"] == 1


def test_from_settings_requires_panel() -> None:
    with pytest.raises(ConfigurationError):
        ServerAggregator.from_settings(Settings())


def test_from_settings_without_client_key() -> None:
    settings = Settings(panel_url="https://panel.test", application_api_key="k", probe_enabled=False)

    aggregator = ServerAggregator.from_settings(settings)

    assert isinstance(aggregator, ServerAggregator)
