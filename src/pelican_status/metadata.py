"""Decoder for the ``key:value,key:value`` tags stored in a server's external id."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

DISPLAY_KEY = "display"
START_KEY = "start"
DOMAIN_KEY = "domain"
SUBDOMAIN_KEY = "subdomain"
GROUP_KEY = "group"
SUBGROUP_KEY = "subgroup"
PORT_KEY = "port"


def parse_metadata(tag_string: Optional[str]) -> Dict[str, str]:
    """Parse a tag string into a mapping; never raises.

    Segments are split on the first ``:`` only, so values may themselves
    contain colons. Segments missing a key or a value are dropped, and a
    repeated key keeps its last value.
    """
    if not tag_string:
        return {}

    metadata: Dict[str, str] = {}
    for segment in tag_string.split(","):
        key, separator, value = segment.partition(":")
        if not separator:
            continue
        key = key.strip()
        value = value.strip()
        if key and value:
            metadata[key] = value
    return metadata


def flag_enabled(metadata: Mapping[str, str], key: str) -> bool:
    """Return True only for the literal value ``"true"``."""
    return metadata.get(key) == "true"


def is_visible(metadata: Mapping[str, str]) -> bool:
    return flag_enabled(metadata, DISPLAY_KEY)
