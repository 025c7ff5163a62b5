"""Consumer-facing entry point tying fetch, retry, polling, and the watchlist together."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, FrozenSet, Optional

import requests

from marketwatch.data.fetcher import TimeoutFetcher
from marketwatch.data.models import PollCycleResult
from marketwatch.data.polling import PollLoop
from marketwatch.data.retry import RetryScheduler, Sleeper
from marketwatch.data.store import DatasetStore, DatasetView, ProgressCallback, ResultCallback
from marketwatch.infra.config import AppConfig
from marketwatch.infra.metrics import MetricsSink
from marketwatch.infra.watchlist import Watchlist, WatchlistBackend, build_backend


def build_metrics(config: AppConfig) -> MetricsSink:
    return MetricsSink(
        metrics_file=Path(config.metrics.textfile_path),
        emit_textfile=config.metrics.emit_textfile,
    )


def build_scheduler(
    config: AppConfig,
    logger: logging.Logger,
    session: Optional[requests.Session] = None,
    metrics: Optional[MetricsSink] = None,
    sleep: Sleeper = asyncio.sleep,
) -> RetryScheduler:
    """Instantiate the retry scheduler and its fetcher from configuration."""

    fetcher = TimeoutFetcher(session=session, logger=logger.getChild("fetcher"))
    return RetryScheduler(
        fetcher,
        endpoints=config.endpoints.to_endpoints(),
        query=config.query.to_query(),
        config=config.retry,
        sleep=sleep,
        metrics_callback=metrics.observe if metrics else None,
        logger=logger.getChild("retry"),
    )


class MarketWatchApp:
    """Keeps a local market view fresh and exposes it to UI/CLI consumers."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        session: Optional[requests.Session] = None,
        watchlist_backend: Optional[WatchlistBackend] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.config = config or AppConfig()
        self.logger = logging.getLogger("marketwatch.app")
        self.metrics = build_metrics(self.config)
        self.store = DatasetStore(logger=self.logger.getChild("store"))
        self.scheduler = build_scheduler(self.config, self.logger, session=session, metrics=self.metrics, sleep=sleep)
        self.loop = PollLoop(
            self.scheduler,
            self.store,
            interval=self.config.polling.interval,
            sleep=sleep,
            logger=self.logger.getChild("poll"),
        )
        backend = watchlist_backend or build_backend(self.config.watchlist.backend, self.config.watchlist.path)
        self.watchlist = Watchlist(backend, logger=self.logger.getChild("watchlist"))

    def subscribe(
        self,
        callback: ResultCallback,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Callable[[], None]:
        return self.store.subscribe(callback, on_progress)

    def view(self) -> DatasetView:
        return self.store.view()

    def get_watchlist_state(self) -> FrozenSet[str]:
        return self.watchlist.state()

    def toggle_watchlist(self, asset_id: str) -> bool:
        return self.watchlist.toggle(asset_id)

    async def refresh(self) -> PollCycleResult:
        """Run one cycle immediately, outside the regular cadence."""

        return await self.loop.run_once()

    def start(self) -> asyncio.Task:
        self.logger.info(
            "Starting market poll loop",
            extra={
                "event": "startup",
                "primary_url": self.config.endpoints.primary,
                "backup_url": self.config.endpoints.backup,
                "interval_seconds": self.config.polling.interval_seconds,
            },
        )
        return self.loop.start()

    async def close(self) -> None:
        await self.loop.stop()


__all__ = ["MarketWatchApp", "build_scheduler", "build_metrics"]
