"""Mapping from panel/daemon state strings to display states."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from pelican_status.models import ServerStatus

_LOGGER = logging.getLogger(__name__)

_STATUS_TABLE: Dict[str, ServerStatus] = {
    "running": ServerStatus.ONLINE,
    "offline": ServerStatus.OFFLINE,
    "stopped": ServerStatus.OFFLINE,
    "starting": ServerStatus.STARTING,
    "stopping": ServerStatus.STOPPING,
    "installing": ServerStatus.INSTALLING,
}


def normalize_status(raw_status: Optional[str]) -> ServerStatus:
    """Map ``raw_status`` to a ``ServerStatus`` by case-insensitive exact match."""
    if raw_status is None:
        return ServerStatus.UNKNOWN

    status = _STATUS_TABLE.get(raw_status.lower())
    if status is None:
        _LOGGER.warning("Unrecognized server status %r; using unknown", raw_status)
        return ServerStatus.UNKNOWN
    return status
