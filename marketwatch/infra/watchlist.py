"""Starred-asset persistence behind a small load/save interface."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from pathlib import Path
from typing import FrozenSet, Iterable, Optional, Protocol, Set


class WatchlistBackend(Protocol):
    """Protocol for watchlist storage implementations."""

    def load(self) -> Set[str]:
        """Return the persisted set of asset identifiers."""

    def save(self, ids: Set[str]) -> None:
        """Replace the persisted set with ``ids``."""


class InMemoryWatchlistBackend:
    """Keeps the watchlist in process memory only."""

    def __init__(self, initial: Iterable[str] = ()) -> None:
        self._ids = set(initial)
        self.saves = 0

    def load(self) -> Set[str]:
        return set(self._ids)

    def save(self, ids: Set[str]) -> None:
        self._ids = set(ids)
        self.saves += 1


class JsonFileWatchlistBackend:
    """Store the watchlist as a JSON array on the local filesystem."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Set[str]:
        if not self.path.exists():
            return set()
        raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        if not isinstance(raw, list):
            raise ValueError(f"{self.path} does not contain a JSON array")
        return {str(item) for item in raw}

    def save(self, ids: Set[str]) -> None:
        temp_path = self.path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(sorted(ids)), encoding="utf-8")
        os.replace(temp_path, self.path)


class SQLiteWatchlistBackend:
    """Persist the watchlist to a SQLite database."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    def _initialize(self) -> None:
        with sqlite3.connect(self.path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS watchlist (
                    asset_id TEXT PRIMARY KEY,
                    added_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

    def load(self) -> Set[str]:
        with sqlite3.connect(self.path) as conn:
            rows = conn.execute("SELECT asset_id FROM watchlist").fetchall()
        return {row[0] for row in rows}

    def save(self, ids: Set[str]) -> None:
        with sqlite3.connect(self.path) as conn:
            stored = {row[0] for row in conn.execute("SELECT asset_id FROM watchlist")}
            conn.executemany(
                "DELETE FROM watchlist WHERE asset_id = ?",
                [(asset_id,) for asset_id in sorted(stored - ids)],
            )
            conn.executemany(
                "INSERT OR IGNORE INTO watchlist (asset_id) VALUES (?)",
                [(asset_id,) for asset_id in sorted(ids)],
            )
            conn.commit()


class Watchlist:
    """Toggleable set of starred asset ids.

    Reads come from memory; every change is written through to the backend.
    Backend failures are logged and never raised, and the last write wins.
    """

    def __init__(self, backend: WatchlistBackend, logger: Optional[logging.Logger] = None) -> None:
        self.backend = backend
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._ids: Set[str] = self._load()

    def state(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._ids)

    def toggle(self, asset_id: str) -> bool:
        """Flip membership of ``asset_id``; returns whether it is now starred."""

        with self._lock:
            if asset_id in self._ids:
                self._ids.discard(asset_id)
                starred = False
            else:
                self._ids.add(asset_id)
                starred = True
            snapshot = set(self._ids)
        self._save(snapshot)
        return starred

    def _load(self) -> Set[str]:
        try:
            return set(self.backend.load())
        except Exception as exc:
            self.logger.warning(
                "Could not load watchlist: %s", exc,
                extra={"event": "watchlist_load_failed"},
            )
            return set()

    def _save(self, ids: Set[str]) -> None:
        try:
            self.backend.save(ids)
        except Exception as exc:
            self.logger.warning(
                "Could not save watchlist: %s", exc,
                extra={"event": "watchlist_save_failed", "size": len(ids)},
            )


def build_backend(kind: str, path: Optional[str] = None) -> WatchlistBackend:
    """Instantiate a backend by name (``memory``, ``file`` or ``sqlite``)."""

    if kind == "memory":
        return InMemoryWatchlistBackend()
    if kind == "file":
        return JsonFileWatchlistBackend(Path(path or "var/watchlist.json"))
    if kind == "sqlite":
        return SQLiteWatchlistBackend(Path(path or "var/watchlist.db"))
    raise ValueError(f"Unknown watchlist backend: {kind}")


__all__ = [
    "Watchlist",
    "WatchlistBackend",
    "InMemoryWatchlistBackend",
    "JsonFileWatchlistBackend",
    "SQLiteWatchlistBackend",
    "build_backend",
]
