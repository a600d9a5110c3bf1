"""NDJSON rendering of aggregation results for command-line output."""

from __future__ import annotations

import json
from typing import Any, Iterator, Mapping

from pelican_status.models import AggregationResult


def to_ndjson_line(record: Mapping[str, Any]) -> str:
    """Serialize a record as one compact JSON line, keys in given order."""
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False)


def iter_ndjson(result: AggregationResult) -> Iterator[str]:
    """Yield one line per server, each stamped with the cycle timestamp."""
    timestamp = result.timestamp.isoformat()
    for server in result.servers:
        payload = server.to_payload()
        payload["timestamp"] = timestamp
        yield to_ndjson_line(payload)
