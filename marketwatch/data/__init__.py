"""Fetch, classification, retry, and polling of remote market data."""

from .classifier import ResponseClassifier
from .clients import MarketEndpoints, MarketsQuery
from .fetcher import TimeoutFetcher
from .models import CryptoAsset, Endpoint, FetchRequest, Outcome, OutcomeKind, PollCycleResult, RetryStatus
from .polling import PollLoop
from .retry import RetryConfig, RetryScheduler
from .store import DatasetStore, DatasetView

__all__ = [
    "CryptoAsset",
    "DatasetStore",
    "DatasetView",
    "Endpoint",
    "FetchRequest",
    "MarketEndpoints",
    "MarketsQuery",
    "Outcome",
    "OutcomeKind",
    "PollCycleResult",
    "PollLoop",
    "ResponseClassifier",
    "RetryConfig",
    "RetryScheduler",
    "RetryStatus",
    "TimeoutFetcher",
]
