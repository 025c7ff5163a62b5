"""Display helpers for the markets table."""

from __future__ import annotations

from typing import Iterable, List, Optional

from marketwatch.data.models import CryptoAsset


def format_usd(value: Optional[float]) -> str:
    if value is None:
        return "-"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_compact(value: Optional[float]) -> str:
    """Abbreviate large figures as T/B/M, e.g. ``1.23T``."""

    if value is None:
        return "-"
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M")):
        if value >= threshold:
            return f"{value / threshold:.2f}{suffix}"
    return f"{value:.2f}".rstrip("0").rstrip(".") or "0"


def format_change(value: Optional[float]) -> str:
    if value is None:
        return "-"
    arrow = "▲" if value >= 0 else "▼"
    return f"{arrow} {abs(value):.2f}%"


def filter_assets(assets: Iterable[CryptoAsset], term: Optional[str]) -> List[CryptoAsset]:
    """Case-insensitive substring match on name or symbol."""

    if not term:
        return list(assets)
    needle = term.lower()
    return [asset for asset in assets if needle in asset.name.lower() or needle in asset.symbol.lower()]


__all__ = ["format_usd", "format_compact", "format_change", "filter_assets"]
