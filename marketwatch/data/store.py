"""Consumer-facing holder for the latest settled dataset."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from .models import CryptoAsset, Endpoint, PollCycleResult, RetryStatus

ResultCallback = Callable[[PollCycleResult], None]
ProgressCallback = Callable[[RetryStatus], None]


@dataclass(frozen=True)
class DatasetView:
    """Immutable snapshot of what a consumer should display."""

    assets: Tuple[CryptoAsset, ...] = ()
    error: Optional[str] = None
    updated_at: Optional[datetime] = None
    endpoint: Optional[Endpoint] = None
    progress: Optional[RetryStatus] = None

    @property
    def loading(self) -> bool:
        return not self.assets and self.error is None

    @property
    def using_backup(self) -> bool:
        return self.endpoint is Endpoint.BACKUP


class DatasetStore:
    """Keeps the last good dataset and the current error or retry status.

    A failed cycle surfaces its error but never clears assets fetched by an
    earlier successful cycle.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._view = DatasetView()
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Tuple[ResultCallback, Optional[ProgressCallback]]] = {}
        self._next_token = 0

    def view(self) -> DatasetView:
        with self._lock:
            return self._view

    def publish(self, result: PollCycleResult) -> DatasetView:
        with self._lock:
            if result.ok:
                self._view = DatasetView(
                    assets=result.assets,
                    error=None,
                    updated_at=result.settled_at,
                    endpoint=result.endpoint,
                )
            else:
                self._view = replace(self._view, error=result.error, progress=None)
            view = self._view
            listeners = [callback for callback, _ in self._subscribers.values()]

        for callback in listeners:
            self._notify(callback, result)
        return view

    def publish_progress(self, status: RetryStatus) -> None:
        with self._lock:
            self._view = replace(self._view, progress=status)
            listeners = [on_progress for _, on_progress in self._subscribers.values() if on_progress]

        for callback in listeners:
            self._notify(callback, status)

    def subscribe(
        self,
        callback: ResultCallback,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Callable[[], None]:
        """Register for settled results; returns a function that unsubscribes."""

        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = (callback, on_progress)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _notify(self, callback: Callable, value: object) -> None:
        try:
            callback(value)
        except Exception:
            self.logger.exception("Dataset subscriber raised", extra={"event": "subscriber_error"})


__all__ = ["DatasetStore", "DatasetView"]
