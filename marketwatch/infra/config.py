"""Config loading utilities for the market watch client and dashboard."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from marketwatch.data.clients import DEFAULT_BASE_URL, MarketEndpoints, MarketsQuery
from marketwatch.data.retry import RetryConfig


@dataclass
class EndpointsConfig:
    primary: str = DEFAULT_BASE_URL
    backup: str = DEFAULT_BASE_URL

    def to_endpoints(self) -> MarketEndpoints:
        return MarketEndpoints(primary=self.primary, backup=self.backup)


@dataclass
class QueryConfig:
    vs_currency: str = "usd"
    order: str = "market_cap_desc"
    per_page: int = 100
    page: int = 1
    precision: int = 2

    def to_query(self) -> MarketsQuery:
        return MarketsQuery(
            vs_currency=self.vs_currency,
            order=self.order,
            per_page=self.per_page,
            page=self.page,
            precision=self.precision,
        )


@dataclass
class PollingConfig:
    interval_seconds: float = 60.0

    @property
    def interval(self) -> timedelta:
        return timedelta(seconds=self.interval_seconds)


@dataclass
class WatchlistConfig:
    backend: str = "file"
    path: Optional[str] = None


@dataclass
class MetricsConfig:
    textfile_path: str = "var/metrics.prom"
    emit_textfile: bool = False


@dataclass
class DashboardConfig:
    host: str = "127.0.0.1"
    port: int = 8000
    enable: bool = True


@dataclass
class AppConfig:
    endpoints: EndpointsConfig = field(default_factory=EndpointsConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    watchlist: WatchlistConfig = field(default_factory=WatchlistConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"config section '{name}' must be a mapping")
    return value


def parse_config(raw: Dict[str, Any]) -> AppConfig:
    """Build an :class:`AppConfig` from an already-parsed mapping."""

    if not isinstance(raw, dict):
        raise ValueError("config root must be a mapping")

    endpoints = _section(raw, "endpoints")
    query = _section(raw, "query")
    retry = _section(raw, "retry")
    polling = _section(raw, "polling")
    watchlist = _section(raw, "watchlist")
    metrics = _section(raw, "metrics")
    dashboard = _section(raw, "dashboard")

    primary = endpoints.get("primary", DEFAULT_BASE_URL)
    return AppConfig(
        endpoints=EndpointsConfig(
            primary=primary,
            backup=endpoints.get("backup", primary),
        ),
        query=QueryConfig(
            vs_currency=query.get("vs_currency", "usd"),
            order=query.get("order", "market_cap_desc"),
            per_page=int(query.get("per_page", 100)),
            page=int(query.get("page", 1)),
            precision=int(query.get("precision", 2)),
        ),
        retry=RetryConfig(
            max_retries=int(retry.get("max_retries", 5)),
            initial_delay=float(retry.get("initial_delay_seconds", 2.0)),
            rate_limit_delay=float(retry.get("rate_limit_delay_seconds", 5.0)),
            request_timeout=float(retry.get("request_timeout_seconds", 20.0)),
        ),
        polling=PollingConfig(
            interval_seconds=float(polling.get("interval_seconds", 60.0)),
        ),
        watchlist=WatchlistConfig(
            backend=watchlist.get("backend", "file"),
            path=watchlist.get("path"),
        ),
        metrics=MetricsConfig(
            textfile_path=metrics.get("textfile_path", "var/metrics.prom"),
            emit_textfile=bool(metrics.get("emit_textfile", False)),
        ),
        dashboard=DashboardConfig(
            host=dashboard.get("host", "127.0.0.1"),
            port=int(dashboard.get("port", 8000)),
            enable=bool(dashboard.get("enable", True)),
        ),
    )


def load_config(path: str | Path) -> AppConfig:
    resolved = Path(path).expanduser().resolve()
    with resolved.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    return parse_config(raw or {})


def env_or_default(key: str, default: str) -> str:
    return os.getenv(key, default)


__all__ = [
    "load_config",
    "parse_config",
    "env_or_default",
    "AppConfig",
    "EndpointsConfig",
    "QueryConfig",
    "PollingConfig",
    "WatchlistConfig",
    "MetricsConfig",
    "DashboardConfig",
]
