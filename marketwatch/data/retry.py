"""Attempt, backoff, and failover state machine for a single poll cycle.

Each cycle starts at attempt 0 on whichever endpoint the previous cycle ended
on. After every classified outcome :meth:`RetryScheduler.transition` decides
whether to succeed, fail, or retry (optionally after a delay and optionally on
the backup endpoint). Only the terminal result leaves the scheduler; retry
progress is reported through an ``on_status`` callback before each wait.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from .clients import MarketEndpoints, MarketsQuery
from .fetcher import TimeoutFetcher
from .models import Endpoint, Outcome, OutcomeKind, PollCycleResult, RetryState, RetryStatus

RATE_LIMIT_MESSAGE = "rate limit exceeded"
ACCESS_DENIED_MESSAGE = "access denied"
NOT_FOUND_MESSAGE = "requested data not available"
INVALID_DATA_MESSAGE = "invalid data format"


@dataclass
class RetryConfig:
    """Retry limits and delays, all in seconds."""

    max_retries: int = 5
    initial_delay: float = 2.0
    rate_limit_delay: float = 5.0
    request_timeout: float = 20.0

    def backoff(self, attempt: int) -> float:
        """Delay before the ``attempt``-th transient retry (``attempt >= 1``)."""

        return self.initial_delay * (2 ** (attempt - 1))


class Action(str, Enum):
    SUCCEED = "succeed"
    RETRY = "retry"
    FAIL = "fail"


@dataclass(frozen=True)
class Transition:
    """Decision taken after one outcome."""

    action: Action
    delay: float = 0.0
    message: Optional[str] = None
    detail: Optional[str] = None


StatusCallback = Callable[[RetryStatus], None]
Sleeper = Callable[[float], Awaitable[None]]


class RetryScheduler:
    """Drives fetch attempts for one cycle at a time.

    The scheduler owns the endpoint selection carried between cycles: a cycle
    that fell back to the backup leaves the next cycle starting there.
    """

    def __init__(
        self,
        fetcher: TimeoutFetcher,
        endpoints: Optional[MarketEndpoints] = None,
        query: Optional[MarketsQuery] = None,
        config: Optional[RetryConfig] = None,
        sleep: Sleeper = asyncio.sleep,
        metrics_callback: Optional[Callable[[str, Dict[str, float]], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.fetcher = fetcher
        self.endpoints = endpoints or MarketEndpoints()
        self.query = query or MarketsQuery()
        self.config = config or RetryConfig()
        self.metrics_callback = metrics_callback
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep
        self._endpoint = Endpoint.PRIMARY

    @property
    def endpoint(self) -> Endpoint:
        """Endpoint the next cycle will start on."""

        return self._endpoint

    async def run_cycle(self, on_status: Optional[StatusCallback] = None) -> PollCycleResult:
        """Fetch until the cycle settles as succeeded or failed."""

        state = RetryState(endpoint=self._endpoint)
        while True:
            request = self.query.request(
                self.endpoints, state.endpoint, state.attempt, self.config.request_timeout
            )
            outcome = await self.fetcher.fetch(request)
            self._emit_metrics(
                "fetch_outcome",
                {"attempt": float(state.attempt), "status_code": float(outcome.status_code or 0)},
            )
            self.logger.debug(
                "Attempt %s on %s classified as %s", state.attempt, state.endpoint.value, outcome.kind.value,
                extra={"event": "fetch_outcome", "outcome": outcome.kind.value, "endpoint": state.endpoint.value},
            )

            step = self.transition(state, outcome)
            if step.action is Action.SUCCEED:
                return self._settle(state, assets=outcome.assets)
            if step.action is Action.FAIL:
                return self._settle(state, error=step.message, detail=step.detail)

            if step.delay > 0:
                status = RetryStatus(
                    delay_seconds=step.delay,
                    attempt=state.attempt,
                    max_retries=self.config.max_retries,
                    endpoint=state.endpoint,
                    reason=step.message,
                )
                self.logger.info(
                    status.message,
                    extra={"event": "retry_scheduled", "reason": step.message, "endpoint": state.endpoint.value},
                )
                if on_status is not None:
                    on_status(status)
                await self._sleep(step.delay)
                state.cumulative_delay += step.delay

    def transition(self, state: RetryState, outcome: Outcome) -> Transition:
        """Apply one outcome to ``state`` and return what to do next.

        Performs no I/O; the only side effect is on ``state``.
        """

        kind = outcome.kind
        limit = self.config.max_retries

        if kind is OutcomeKind.SUCCESS:
            return Transition(Action.SUCCEED)

        if kind is OutcomeKind.RATE_LIMITED:
            if state.attempt < limit:
                state.attempt += 1
                return Transition(Action.RETRY, delay=self.config.rate_limit_delay, message=RATE_LIMIT_MESSAGE)
            return Transition(Action.FAIL, message=RATE_LIMIT_MESSAGE)

        if kind is OutcomeKind.FORBIDDEN:
            if state.endpoint is Endpoint.PRIMARY:
                self._switch_to_backup(state, "forbidden")
                return Transition(Action.RETRY)
            return Transition(Action.FAIL, message=ACCESS_DENIED_MESSAGE, detail=outcome.reason)

        if kind is OutcomeKind.NOT_FOUND:
            return Transition(Action.FAIL, message=NOT_FOUND_MESSAGE, detail=outcome.reason)

        if kind is OutcomeKind.MALFORMED:
            return Transition(Action.FAIL, message=INVALID_DATA_MESSAGE, detail=outcome.reason)

        if kind is OutcomeKind.TIMEOUT:
            if state.attempt == 0 and state.endpoint is Endpoint.PRIMARY and not state.switched:
                self._switch_to_backup(state, "timeout")
                return Transition(Action.RETRY)

        message = outcome.reason or "Failed to fetch cryptocurrency data"
        if state.attempt < limit:
            state.attempt += 1
            return Transition(Action.RETRY, delay=self.config.backoff(state.attempt), message=message)
        return Transition(Action.FAIL, message=message)

    def _switch_to_backup(self, state: RetryState, reason: str) -> None:
        state.endpoint = Endpoint.BACKUP
        state.attempt = 0
        state.switched = True
        self.logger.warning(
            "Switching to backup endpoint after %s", reason,
            extra={"event": "failover", "reason": reason, "backup_url": self.endpoints.backup},
        )
        self._emit_metrics("failover", {"switched": 1.0})

    def _settle(
        self,
        state: RetryState,
        assets=(),
        error: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> PollCycleResult:
        self._endpoint = state.endpoint
        result = PollCycleResult(
            endpoint=state.endpoint,
            settled_at=datetime.now(timezone.utc),
            assets=tuple(assets),
            retries=state.attempt,
            error=error,
            detail=detail,
        )
        if result.ok:
            self.logger.info(
                "Fetched %s assets from %s endpoint", len(result.assets), state.endpoint.value,
                extra={"event": "cycle_succeeded", "retries": state.attempt, "endpoint": state.endpoint.value},
            )
        else:
            self.logger.error(
                "Cycle failed: %s", error,
                extra={"event": "cycle_failed", "retries": state.attempt, "detail": detail, "endpoint": state.endpoint.value},
            )
        self._emit_metrics(
            "cycle_settled",
            {
                "ok": 1.0 if result.ok else 0.0,
                "retries": float(state.attempt),
                "backoff_seconds": state.cumulative_delay,
                "assets": float(len(result.assets)),
            },
        )
        return result

    def _emit_metrics(self, name: str, values: Dict[str, float]) -> None:
        if not self.metrics_callback:
            return
        try:
            self.metrics_callback(name, values)
        except Exception as exc:  # pragma: no cover - external callback safety
            self.logger.debug("Metric callback failed for %s: %s", name, exc)


__all__ = [
    "RetryScheduler",
    "RetryConfig",
    "Transition",
    "Action",
    "RATE_LIMIT_MESSAGE",
    "ACCESS_DENIED_MESSAGE",
    "NOT_FOUND_MESSAGE",
    "INVALID_DATA_MESSAGE",
]
