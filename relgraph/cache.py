"""
RELGRAPH v1.0 · Layout Cache.

Persists the last computed layout (position and pin flag per node, one
timestamp per snapshot) in a lightweight key/value settings store, and
restores it onto freshly built graphs when it is still meaningful.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

from pydantic import ValidationError

from relgraph import config
from relgraph.exceptions import CacheDecodeError
from relgraph.graph.types import GraphNode, Point
from relgraph.models import LayoutCacheEntry, LayoutSnapshot
from relgraph.temporal import hours_since, now_iso, now_ts

logger = logging.getLogger("relgraph.cache")

# Failures of the backing store; the cache treats them as "no cache".
STORE_ERRORS = (sqlite3.Error, OSError)

SETTINGS_SCHEMA = """
CREATE TABLE IF NOT EXISTS settings (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class SettingsStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemorySettingsStore:
    """Process-local settings, for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SQLiteSettingsStore:
    """Key/value settings in a small SQLite file of their own."""

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = Path(db_path or config.DB_PATH).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            conn = sqlite3.connect(str(self._db_path), timeout=10, check_same_thread=False)
            try:
                conn.execute(SETTINGS_SCHEMA)
                conn.commit()
            except sqlite3.Error:
                conn.close()
                raise
            self._conn = conn
        return self._conn

    def get(self, key: str) -> Optional[str]:
        row = self._get_conn().execute(
            "SELECT value FROM settings WHERE key = ?", (key,)
        ).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        conn = self._get_conn()
        conn.execute(
            "INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
            (key, value, now_iso()),
        )
        conn.commit()

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM settings WHERE key = ?", (key,))
        conn.commit()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class LayoutCache:
    """Snapshot of node positions with a TTL and a match-ratio heuristic.

    A snapshot is reused only if it is younger than the TTL and more than
    half of the current nodes appear in it; otherwise the caller runs a
    fresh layout.
    """

    def __init__(
        self,
        store: SettingsStore,
        ttl_hours: float | None = None,
        key: str | None = None,
        clock: Callable[[], float] = now_ts,
    ):
        self.store = store
        self.ttl_hours = config.CACHE_TTL_HOURS if ttl_hours is None else ttl_hours
        self.key = key or config.CACHE_KEY
        self.clock = clock

    # ─── Persisted-state interface ───────────────────────────────────

    def load_layout_cache(self) -> Optional[LayoutSnapshot]:
        raw = self.store.get(self.key)
        if raw is None:
            return None
        try:
            return decode_snapshot(raw)
        except CacheDecodeError:
            logger.debug("Discarding undecodable layout cache", exc_info=True)
            return None

    def save_layout_cache(self, snapshot: LayoutSnapshot) -> None:
        self.store.set(self.key, snapshot.model_dump_json())

    def clear_layout_cache(self) -> None:
        self.store.delete(self.key)

    # ─── Graph-facing operations ─────────────────────────────────────

    def save(self, nodes: Sequence[GraphNode]) -> LayoutSnapshot:
        """Persist (id, x, y, pinned) for every positioned node."""
        snapshot = LayoutSnapshot(
            timestamp=self.clock(),
            entries=[
                LayoutCacheEntry(id=n.id, x=n.position.x, y=n.position.y, is_pinned=n.is_pinned)
                for n in nodes
                if n.has_position()
            ],
        )
        try:
            self.save_layout_cache(snapshot)
        except STORE_ERRORS as e:
            logger.warning("Could not save layout cache: %s", e)
            return snapshot
        logger.info("Cached layout for %d nodes", len(snapshot.entries))
        return snapshot

    def restore(self, nodes: Sequence[GraphNode]) -> bool:
        """Apply the snapshot onto ``nodes``. Returns True if it was applied.

        Nothing is modified unless the restore succeeds.
        """
        try:
            snapshot = self.load_layout_cache()
        except STORE_ERRORS as e:
            logger.debug("Layout cache unreadable: %s", e, exc_info=True)
            return False
        if snapshot is None:
            return False
        age = hours_since(snapshot.timestamp, self.clock())
        if age >= self.ttl_hours:
            logger.info("Layout cache expired (%.1fh old)", age)
            return False

        entries = {e.id: e for e in snapshot.entries}
        matches = [(node, entries[node.id]) for node in nodes if node.id in entries]
        total = len(nodes)
        if len(matches) * 2 <= total:
            logger.info("Layout cache rejected: %d/%d nodes matched", len(matches), total)
            return False

        for node, entry in matches:
            node.position = Point(entry.x, entry.y)
            node.is_pinned = entry.is_pinned
        logger.info("Restored cached layout for %d/%d nodes", len(matches), total)
        return True

    def invalidate(self) -> bool:
        """Drop the snapshot so the next build runs a full layout.

        Returns False if the backing store could not be written.
        """
        try:
            self.clear_layout_cache()
        except STORE_ERRORS as e:
            logger.warning("Could not clear layout cache: %s", e)
            return False
        logger.info("Layout cache invalidated")
        return True


def decode_snapshot(raw: str) -> LayoutSnapshot:
    try:
        return LayoutSnapshot.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise CacheDecodeError(str(e)) from e
