"""Self-recovering poller for rate-limited market data endpoints."""

__version__ = "0.1.0"
