"""Grouping and icon helpers for rendering aggregated server records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pelican_status.models import ServerRecord

ICON_EXTENSIONS: Tuple[str, ...] = ("png", "webp", "jpg")


@dataclass
class Subgroup:
    """Servers sharing a subgroup label; ``name`` is None for the remainder."""

    name: Optional[str]
    servers: List[ServerRecord] = field(default_factory=list)

    def to_payload(self, panel_url: Optional[str] = None) -> Dict[str, Any]:
        return {
            "name": self.name,
            "servers": [server_view(server, panel_url) for server in self.servers],
        }


@dataclass
class ServerGroup:
    name: str
    subgroups: List[Subgroup] = field(default_factory=list)

    def to_payload(self, panel_url: Optional[str] = None) -> Dict[str, Any]:
        return {
            "name": self.name,
            "subgroups": [
                subgroup.to_payload(panel_url) for subgroup in self.subgroups
            ],
        }


@dataclass
class GroupedServers:
    groups: List[ServerGroup] = field(default_factory=list)
    ungrouped: List[ServerRecord] = field(default_factory=list)

    def to_payload(self, panel_url: Optional[str] = None) -> Dict[str, Any]:
        return {
            "groups": [group.to_payload(panel_url) for group in self.groups],
            "ungrouped": [
                server_view(server, panel_url) for server in self.ungrouped
            ],
        }


def group_servers(records: Iterable[ServerRecord]) -> GroupedServers:
    """Partition records into group -> subgroup buckets.

    Groups and named subgroups are sorted by name; the unnamed subgroup of a
    group comes last. Records without a group land in ``ungrouped``. Input
    order is kept inside each bucket.
    """
    buckets: Dict[str, Dict[Optional[str], List[ServerRecord]]] = {}
    ungrouped: List[ServerRecord] = []

    for record in records:
        if not record.group:
            ungrouped.append(record)
            continue
        subgroups = buckets.setdefault(record.group, {})
        subgroups.setdefault(record.subgroup or None, []).append(record)

    groups: List[ServerGroup] = []
    for group_name in sorted(buckets, key=_sort_key):
        subgroups = buckets[group_name]
        named = sorted(
            (name for name in subgroups if name is not None), key=_sort_key
        )
        ordered: List[Subgroup] = [
            Subgroup(name=name, servers=subgroups[name]) for name in named
        ]
        if None in subgroups:
            ordered.append(Subgroup(name=None, servers=subgroups[None]))
        groups.append(ServerGroup(name=group_name, subgroups=ordered))

    return GroupedServers(groups=groups, ungrouped=ungrouped)


def server_view(record: ServerRecord, panel_url: Optional[str] = None) -> Dict[str, Any]:
    """Record payload plus icon hints when the panel URL is known."""
    payload = record.to_payload()
    payload["iconLetter"] = icon_letter(record)
    if panel_url:
        payload["icons"] = icon_candidates(record, panel_url)
    return payload


def icon_candidates(record: ServerRecord, panel_url: str) -> List[str]:
    """Icon URLs to try in order: the server's own, then its egg's."""
    base = panel_url.rstrip("/")
    urls = [
        f"{base}/storage/icons/server/{record.uuid}.{extension}"
        for extension in ICON_EXTENSIONS
    ]
    if record.egg_uuid:
        urls.extend(
            f"{base}/storage/icons/egg/{record.egg_uuid}.{extension}"
            for extension in ICON_EXTENSIONS
        )
    return urls


def icon_letter(record: ServerRecord) -> str:
    """Last-resort icon: the first letter of the server name."""
    name = record.name.strip()
    return name[0].upper() if name else "?"


def _sort_key(name: str) -> Tuple[str, str]:
    return (name.casefold(), name)
