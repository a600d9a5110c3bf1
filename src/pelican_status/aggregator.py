"""Aggregation cycle: inventory, visibility filter, enrichment and merge."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import requests

from pelican_status.capabilities import CapabilityCache, CapabilityResolver
from pelican_status.clients.account_client import AccountClient
from pelican_status.clients.application_client import ApplicationClient
from pelican_status.config import Settings
from pelican_status.inventory import InventoryFetcher
from pelican_status.live_status import LiveStatusFetcher
from pelican_status.metadata import (DOMAIN_KEY, GROUP_KEY, START_KEY,
                                     SUBDOMAIN_KEY, SUBGROUP_KEY, flag_enabled,
                                     is_visible, parse_metadata)
from pelican_status.models import (AggregationResult, Capability,
                                   InventoryEntry, ServerRecord, ServerStatus)
from pelican_status.net.rate_limiter import RateLimiter
from pelican_status.probe import (ProtocolProber, select_probe_host,
                                  select_probe_port)
from pelican_status.status import normalize_status

_LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 16

_Candidate = Tuple[InventoryEntry, Dict[str, str]]


class ServerAggregator:
    """Produce one ``ServerRecord`` per visible server.

    Only the inventory fetch can fail a cycle. Egg lookups, live status and
    protocol probes degrade the affected record instead. Cycles are
    serialized: a call made while another cycle runs waits for it to finish
    and then runs its own.
    """

    def __init__(
        self,
        inventory: InventoryFetcher,
        resolver: CapabilityResolver,
        live_status: LiveStatusFetcher,
        prober: Optional[ProtocolProber] = None,
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._inventory = inventory
        self._resolver = resolver
        self._live_status = live_status
        self._prober = prober
        self._max_workers = max_workers
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._cycle_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        session: Optional[requests.Session] = None,
    ) -> "ServerAggregator":
        """Wire the pipeline against a real panel.

        Raises ``ConfigurationError`` when the Application API is not
        configured. A missing client key only disables live status.
        """
        limiter = RateLimiter.per_minute(settings.rate_limit_per_minute)
        application = ApplicationClient.from_settings(
            settings, rate_limiter=limiter, session=session
        )
        account: Optional[AccountClient] = None
        if settings.has_client_api:
            account = AccountClient.from_settings(
                settings, rate_limiter=limiter, session=session
            )

        prober: Optional[ProtocolProber] = None
        if settings.probe_enabled:
            prober = ProtocolProber(timeout_ms=settings.probe_timeout_ms)

        return cls(
            InventoryFetcher(application, page_size=settings.page_size),
            CapabilityResolver(
                application,
                keyword=settings.probe_keyword,
                max_workers=settings.max_workers,
            ),
            LiveStatusFetcher(
                account, timeout_seconds=settings.status_timeout_ms / 1000.0
            ),
            prober,
            max_workers=settings.max_workers,
        )

    def aggregate(self) -> AggregationResult:
        """Run one full cycle and return the merged records."""
        with self._cycle_lock:
            return self._run_cycle()

    def _run_cycle(self) -> AggregationResult:
        started_at = time.perf_counter()

        entries = self._inventory.fetch()
        candidates = self._visible_candidates(entries)

        cache = CapabilityCache()
        capabilities = self._resolver.resolve(
            (entry.egg_id for entry, _ in candidates), cache
        )

        records: List[ServerRecord] = []
        if candidates:
            workers = min(self._max_workers, len(candidates))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures: List[Future[ServerRecord]] = [
                    executor.submit(
                        self._build_record,
                        entry,
                        metadata,
                        capabilities.get(entry.egg_id)
                        if entry.egg_id is not None
                        else None,
                    )
                    for entry, metadata in candidates
                ]
            records = [future.result() for future in futures]

        elapsed_ms = (time.perf_counter() - started_at) * 1000.0
        _LOGGER.info(
            "Aggregated %d visible of %d servers (%d eggs) in %.0f ms",
            len(records),
            len(entries),
            len(cache),
            elapsed_ms,
        )
        return AggregationResult(servers=records, timestamp=self._clock())

    def _visible_candidates(self, entries: List[InventoryEntry]) -> List[_Candidate]:
        candidates: List[_Candidate] = []
        for entry in entries:
            metadata = parse_metadata(entry.external_id)
            if is_visible(metadata):
                candidates.append((entry, metadata))
            else:
                _LOGGER.debug("Hiding server %r (metadata=%s)", entry.name, metadata)
        return candidates

    def _build_record(
        self,
        entry: InventoryEntry,
        metadata: Dict[str, str],
        capability: Optional[Capability],
    ) -> ServerRecord:
        # Inventory status only stands in when there is no uuid to query;
        # a failed live lookup means unknown.
        if entry.uuid:
            status = normalize_status(self._live_status.fetch(entry.uuid))
        else:
            _LOGGER.warning("No UUID found for server %s", entry.name)
            status = normalize_status(entry.status)

        record = ServerRecord(
            id=entry.id,
            uuid=entry.uuid or f"server-{entry.id}",
            name=entry.name,
            description=entry.description,
            status=status,
            metadata=metadata,
            is_installed=entry.is_installed,
            updated_at=entry.updated_at,
            image=entry.image,
            domain=_optional_tag(metadata, DOMAIN_KEY),
            subdomain=_optional_tag(metadata, SUBDOMAIN_KEY),
            group=_optional_tag(metadata, GROUP_KEY),
            subgroup=_optional_tag(metadata, SUBGROUP_KEY),
            can_start=flag_enabled(metadata, START_KEY),
            egg_id=entry.egg_id,
            egg_uuid=capability.uuid if capability is not None else None,
        )

        if (
            self._prober is not None
            and capability is not None
            and capability.probe_eligible
            and status is ServerStatus.ONLINE
        ):
            host = select_probe_host(metadata)
            if host is not None:
                snapshot = self._prober.probe(
                    host, select_probe_port(entry.environment, metadata)
                )
                if snapshot is not None:
                    record.apply_players(snapshot)
        return record


def _optional_tag(metadata: Mapping[str, str], key: str) -> Optional[str]:
    return metadata.get(key) or None
