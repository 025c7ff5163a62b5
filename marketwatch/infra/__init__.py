"""Infrastructure utilities for configuration, logging, metrics, and the watchlist."""

from .config import AppConfig, load_config
from .logging import configure_logging
from .metrics import MetricsSink
from .watchlist import (
    InMemoryWatchlistBackend,
    JsonFileWatchlistBackend,
    SQLiteWatchlistBackend,
    Watchlist,
    build_backend,
)

__all__ = [
    "AppConfig",
    "load_config",
    "configure_logging",
    "MetricsSink",
    "Watchlist",
    "InMemoryWatchlistBackend",
    "JsonFileWatchlistBackend",
    "SQLiteWatchlistBackend",
    "build_backend",
]
