"""
RELGRAPH v1.0 · Configuration.
Shared settings and paths for the graph engine, read from the environment.
"""

import os
from pathlib import Path


def _flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


def _viewport(raw: str) -> tuple[float, float]:
    try:
        width, height = raw.lower().split("x", 1)
        return float(width), float(height)
    except ValueError:
        return 1200.0, 800.0


def reload() -> None:
    """Re-read every setting from the environment."""
    global RELGRAPH_DIR, DEFAULT_DB_PATH, DB_PATH
    global LAYOUT_ITERATIONS, VIEWPORT, CANCEL_CHECK_EVERY, BARNES_HUT_THRESHOLD
    global CACHE_TTL_HOURS, CACHE_KEY, SHOW_SELF

    # Base Paths
    RELGRAPH_DIR = Path(os.environ.get("RELGRAPH_DIR", str(Path.home() / ".relgraph")))

    # Settings store (key/value, separate from any CRM database)
    DEFAULT_DB_PATH = RELGRAPH_DIR / "settings.db"
    DB_PATH = os.environ.get("RELGRAPH_DB", str(DEFAULT_DB_PATH))

    # ─── Layout ──────────────────────────────────────────────────────
    LAYOUT_ITERATIONS = int(os.environ.get("RELGRAPH_LAYOUT_ITERATIONS", "300"))
    VIEWPORT = _viewport(os.environ.get("RELGRAPH_VIEWPORT", "1200x800"))
    CANCEL_CHECK_EVERY = max(1, int(os.environ.get("RELGRAPH_CANCEL_CHECK_EVERY", "10")))
    BARNES_HUT_THRESHOLD = int(os.environ.get("RELGRAPH_BARNES_HUT_THRESHOLD", "500"))

    # ─── Layout Cache ────────────────────────────────────────────────
    CACHE_TTL_HOURS = float(os.environ.get("RELGRAPH_CACHE_TTL_HOURS", "24"))
    CACHE_KEY = "graph_layout_cache"

    # ─── Graph Contents ──────────────────────────────────────────────
    SHOW_SELF = _flag("RELGRAPH_SHOW_SELF")


reload()
