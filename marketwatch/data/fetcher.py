"""Single bounded-duration fetch of the markets listing."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import requests

from .classifier import ResponseClassifier
from .clients import DEFAULT_HEADERS, HttpSession
from .models import FetchRequest, Outcome


class TimeoutFetcher:
    """Runs one blocking GET in a worker thread under a hard deadline.

    When the deadline elapses the awaiting coroutine is cancelled and a
    ``Timeout`` outcome is returned. The worker thread is left to finish on its
    own (``requests`` gets the same timeout), and whatever it produces is
    discarded.
    """

    def __init__(
        self,
        session: Optional[HttpSession] = None,
        classifier: Optional[ResponseClassifier] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.classifier = classifier or ResponseClassifier()
        self.logger = logger or logging.getLogger(__name__)

    async def fetch(self, request: FetchRequest) -> Outcome:
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(self._get, request),
                timeout=request.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            self.logger.warning(
                "GET %s timed out after %.1fs", request.url, request.timeout_seconds,
                extra={"event": "fetch_timeout", "endpoint": request.endpoint.value, "attempt": request.attempt},
            )
            return self.classifier.classify(error=exc)
        except requests.RequestException as exc:
            self.logger.warning(
                "GET %s failed: %s", request.url, exc,
                extra={"event": "fetch_error", "endpoint": request.endpoint.value, "attempt": request.attempt},
            )
            return self.classifier.classify(error=exc)

        return self.classifier.classify(response)

    def _get(self, request: FetchRequest) -> requests.Response:
        return self.session.get(
            request.url,
            params=request.params(),
            headers=dict(DEFAULT_HEADERS),
            timeout=request.timeout_seconds,
            allow_redirects=True,
        )


__all__ = ["TimeoutFetcher"]
