"""Retrieval of the full, paginated server inventory from the panel."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Protocol

import requests

from pelican_status.errors import MalformedResponseError, UpstreamError
from pelican_status.models import InventoryEntry

_LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class _InventorySource(Protocol):
    def get_servers_page(self, page: int = 1, per_page: int = 100) -> Any: ...


class InventoryFetcher:
    """Walk every inventory page and decode the entries.

    Any failure here is fatal for the aggregation cycle: transport errors
    and non-success statuses surface as ``UpstreamError``, envelopes without
    a ``data`` array as ``MalformedResponseError``. Individual entries that
    are not JSON objects are skipped.
    """

    def __init__(
        self,
        client: _InventorySource,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._client = client
        self._page_size = page_size

    def fetch(self) -> List[InventoryEntry]:
        entries: List[InventoryEntry] = []
        page = 1
        while True:
            envelope = self._fetch_page(page)
            entries.extend(self._decode_entries(envelope["data"], page))

            total_pages = _total_pages(envelope)
            if total_pages is None or page >= total_pages:
                break
            page += 1

        _LOGGER.info("Fetched %d inventory entries over %d page(s)", len(entries), page)
        return entries

    def _fetch_page(self, page: int) -> Mapping[str, Any]:
        try:
            envelope = self._client.get_servers_page(
                page=page, per_page=self._page_size
            )
        except requests.RequestException as error:
            raise UpstreamError(
                f"Failed to connect to Pelican Panel: {error}"
            ) from error

        if not isinstance(envelope, Mapping) or not isinstance(
            envelope.get("data"), list
        ):
            raise MalformedResponseError(
                f"Invalid response format from Pelican API (page {page})"
            )
        return envelope

    def _decode_entries(self, items: List[Any], page: int) -> List[InventoryEntry]:
        decoded: List[InventoryEntry] = []
        for index, item in enumerate(items):
            if not isinstance(item, Mapping):
                _LOGGER.warning(
                    "Skipping inventory item %d on page %d: expected object, got %s",
                    index,
                    page,
                    type(item).__name__,
                )
                continue
            decoded.append(InventoryEntry.from_payload(item))
        return decoded


def _total_pages(envelope: Mapping[str, Any]) -> Optional[int]:
    meta = envelope.get("meta")
    if not isinstance(meta, Mapping):
        return None
    pagination = meta.get("pagination")
    if not isinstance(pagination, Mapping):
        return None
    total = pagination.get("total_pages")
    if isinstance(total, int) and not isinstance(total, bool):
        return total
    return None
