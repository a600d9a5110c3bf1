"""Resolution of egg (capability) references into classification data."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

import requests

from pelican_status.config import DEFAULT_PROBE_KEYWORD
from pelican_status.errors import MalformedResponseError, PanelError
from pelican_status.models import Capability, unwrap_attributes

_LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


class _EggSource(Protocol):
    def get_egg(self, egg_id: int) -> Any: ...


def is_probe_eligible(
    name: str,
    description: str = "",
    tags: Sequence[str] = (),
    *,
    keyword: str = DEFAULT_PROBE_KEYWORD,
) -> bool:
    """Return True when an egg describes the game the prober understands.

    The keyword matches case-insensitively anywhere in the name or
    description, or exactly as one of the egg's tags.
    """
    if not keyword:
        return False
    needle = keyword.lower()
    if needle in (name or "").lower() or needle in (description or "").lower():
        return True
    return keyword in tags


class CapabilityCache:
    """Reference id to ``Capability`` map that lives for one cycle."""

    def __init__(self) -> None:
        self._entries: Dict[int, Capability] = {}

    def __contains__(self, reference_id: object) -> bool:
        return reference_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def get(self, reference_id: Optional[int]) -> Optional[Capability]:
        if reference_id is None:
            return None
        return self._entries.get(reference_id)

    def store(self, capability: Capability) -> None:
        self._entries[capability.id] = capability


class CapabilityResolver:
    """Fetch egg details once per distinct reference id, in parallel."""

    def __init__(
        self,
        client: _EggSource,
        *,
        keyword: str = DEFAULT_PROBE_KEYWORD,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self._client = client
        self._keyword = keyword
        self._max_workers = max_workers

    def resolve(
        self,
        reference_ids: Iterable[Optional[int]],
        cache: Optional[CapabilityCache] = None,
    ) -> Dict[int, Capability]:
        """Resolve ``reference_ids`` into ``cache`` and return the hits.

        Ids that fail to resolve are logged and left out of the result.
        """
        cache = cache if cache is not None else CapabilityCache()
        requested = [
            reference_id
            for reference_id in dict.fromkeys(reference_ids)
            if reference_id is not None
        ]
        pending = [
            reference_id for reference_id in requested if reference_id not in cache
        ]

        if pending:
            workers = min(self._max_workers, len(pending))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures: List[Tuple[int, Future[Optional[Capability]]]] = [
                    (reference_id, executor.submit(self._resolve_one, reference_id))
                    for reference_id in pending
                ]
            for reference_id, future in futures:
                capability = future.result()
                if capability is not None:
                    cache.store(capability)

        resolved: Dict[int, Capability] = {}
        for reference_id in requested:
            capability = cache.get(reference_id)
            if capability is not None:
                resolved[reference_id] = capability
        return resolved

    def _resolve_one(self, reference_id: int) -> Optional[Capability]:
        try:
            payload = self._client.get_egg(reference_id)
            return self._build_capability(reference_id, payload)
        except (requests.RequestException, PanelError) as error:
            _LOGGER.warning(
                "Could not resolve egg %s: %s", reference_id, error
            )
            return None

    def _build_capability(self, reference_id: int, payload: Any) -> Capability:
        if not isinstance(payload, Mapping):
            raise MalformedResponseError(
                f"Egg {reference_id} response is not an object"
            )
        data = unwrap_attributes(payload)
        name = str(data.get("name") or "")
        description = str(data.get("description") or "")
        raw_tags = data.get("tags")
        tags: Tuple[str, ...] = ()
        if isinstance(raw_tags, list):
            tags = tuple(str(tag) for tag in raw_tags if tag is not None)
        uuid = data.get("uuid")

        return Capability(
            id=reference_id,
            uuid=uuid if isinstance(uuid, str) and uuid else None,
            name=name,
            description=description,
            tags=tags,
            probe_eligible=is_probe_eligible(
                name, description, tags, keyword=self._keyword
            ),
        )
