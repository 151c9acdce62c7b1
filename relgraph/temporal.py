"""
RELGRAPH v1.0 · Clock Helpers.

UTC timestamps for snapshots, evidence ordering and staleness checks.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_iso() -> str:
    """Return current UTC timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


def now_ts() -> float:
    """Return current wall-clock time as epoch seconds."""
    return time.time()


def hours_since(timestamp: float, now: float | None = None) -> float:
    """Hours elapsed between an epoch timestamp and now (or ``now``)."""
    reference = now_ts() if now is None else now
    return (reference - timestamp) / 3600.0


def parse_iso(value: str | datetime) -> datetime:
    """Parse an ISO 8601 string into an aware datetime (naive values are UTC)."""
    dt = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
