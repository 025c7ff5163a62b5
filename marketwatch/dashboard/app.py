"""FastAPI dashboard exposing the latest market view and the watchlist."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from marketwatch.dashboard.formatting import filter_assets, format_change, format_compact, format_usd
from marketwatch.data.store import DatasetStore
from marketwatch.infra.metrics import MetricsSink
from marketwatch.infra.watchlist import Watchlist


def create_dashboard_app(
    store: DatasetStore,
    watchlist: Watchlist,
    metrics: Optional[MetricsSink] = None,
) -> FastAPI:
    app = FastAPI(title="Market Watch Dashboard", version="0.1.0")

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        view = store.view()
        return {
            "status": "error" if view.error else ("loading" if view.loading else "ok"),
            "error": view.error,
            "last_updated": view.updated_at.isoformat() if view.updated_at else None,
            "using_backup": view.using_backup,
            "assets": len(view.assets),
        }

    @app.get("/markets")
    async def markets(search: Optional[str] = None) -> Dict[str, Any]:
        view = store.view()
        starred = watchlist.state()
        rows: List[Dict[str, Any]] = []
        for asset in filter_assets(view.assets, search):
            row = asset.to_dict()
            row.update(
                starred=asset.id in starred,
                price_display=format_usd(asset.current_price),
                change_display=format_change(asset.price_change_percentage_24h),
                market_cap_display=format_compact(asset.market_cap),
                volume_display=format_compact(asset.total_volume),
            )
            rows.append(row)
        return {
            "markets": rows,
            "error": view.error,
            "last_updated": view.updated_at.isoformat() if view.updated_at else None,
            "endpoint": view.endpoint.value if view.endpoint else None,
        }

    @app.get("/status")
    async def status() -> Dict[str, Any]:
        view = store.view()
        return {
            "loading": view.loading,
            "error": view.error,
            "progress": view.progress.to_dict() if view.progress else None,
        }

    @app.get("/watchlist")
    async def get_watchlist() -> Dict[str, Any]:
        return {"watchlist": sorted(watchlist.state())}

    @app.post("/watchlist/{asset_id}")
    async def toggle_watchlist(asset_id: str) -> Dict[str, Any]:
        return {"asset_id": asset_id, "starred": watchlist.toggle(asset_id)}

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics_text() -> str:
        return metrics.render_prometheus() if metrics else ""

    return app


async def run_dashboard(app: FastAPI, host: str, port: int) -> None:
    """Serve the dashboard until cancelled."""

    import uvicorn

    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))
    await server.serve()


__all__ = ["create_dashboard_app", "run_dashboard"]
