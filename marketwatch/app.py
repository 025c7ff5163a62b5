"""Runner wiring the poll loop to the dashboard with signal-driven shutdown."""

from __future__ import annotations

import asyncio
import logging
import signal

from marketwatch.dashboard.app import create_dashboard_app, run_dashboard
from marketwatch.infra.config import env_or_default, load_config
from marketwatch.infra.logging import configure_logging
from marketwatch.main import MarketWatchApp


async def run_app(config_path: str) -> None:
    configure_logging()
    cfg = load_config(config_path)
    logger = logging.getLogger(__name__)

    app = MarketWatchApp(cfg)
    if cfg.endpoints.primary == cfg.endpoints.backup:
        logger.warning("Primary and backup endpoints are identical; failover will hit the same host.")

    stop_event = asyncio.Event()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            asyncio.get_running_loop().add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows/limited environments
            pass

    def log_result(result) -> None:
        if result.ok:
            logger.info("Market view refreshed with %s assets", len(result.assets))
        else:
            logger.warning("Market view refresh failed: %s", result.error)

    unsubscribe = app.subscribe(log_result)
    tasks = [app.start()]
    if cfg.dashboard.enable:
        dashboard = create_dashboard_app(app.store, app.watchlist, app.metrics)
        tasks.append(asyncio.create_task(run_dashboard(dashboard, cfg.dashboard.host, cfg.dashboard.port)))

    await stop_event.wait()
    unsubscribe()
    await app.close()
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Market data watcher")
    parser.add_argument("--config", default=env_or_default("CONFIG_PATH", "config/settings.example.yaml"))
    args = parser.parse_args()
    asyncio.run(run_app(args.config))


if __name__ == "__main__":
    main()
