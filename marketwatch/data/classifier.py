"""Map HTTP responses and transport failures onto a fixed set of outcomes.

Classification is a pure function of its inputs: it never retries, sleeps, or
mutates shared state, so running it twice on the same captured response always
yields an equal :class:`Outcome`.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional

import requests

from .models import CryptoAsset, Outcome


class ResponseClassifier:
    """Turns a ``requests.Response`` or transport error into an :class:`Outcome`."""

    def classify(
        self,
        response: Optional[requests.Response] = None,
        error: Optional[BaseException] = None,
    ) -> Outcome:
        if error is not None:
            return self._classify_error(error)
        if response is None:
            raise ValueError("classify() needs either a response or an error")

        status = response.status_code
        if not 200 <= status < 300:
            return self._classify_status(response)
        return self._classify_body(response)

    def _classify_error(self, error: BaseException) -> Outcome:
        if isinstance(error, (asyncio.TimeoutError, requests.Timeout)):
            return Outcome.timeout()
        return Outcome.transient(str(error) or error.__class__.__name__)

    def _classify_status(self, response: requests.Response) -> Outcome:
        status = response.status_code
        message = self._error_message(response)
        if status == 429:
            return Outcome.rate_limited(message)
        if status == 403:
            return Outcome.forbidden(message)
        if status == 404:
            return Outcome.not_found(message)
        return Outcome.transient(message, status_code=status)

    def _classify_body(self, response: requests.Response) -> Outcome:
        status = response.status_code
        try:
            payload = response.json()
        except ValueError:
            return Outcome.malformed("response body is not valid JSON", status_code=status)

        if not isinstance(payload, list):
            return Outcome.malformed("Invalid data format received from API", status_code=status)
        if not payload:
            return Outcome.malformed("No cryptocurrency data available", status_code=status)

        assets: List[CryptoAsset] = []
        for index, entry in enumerate(payload):
            try:
                assets.append(CryptoAsset.from_payload(entry))
            except ValueError as exc:
                return Outcome.malformed(f"entry {index}: {exc}", status_code=status)
        return Outcome.success(tuple(assets), status_code=status)

    def _error_message(self, response: requests.Response) -> str:
        fallback = f"HTTP error! status: {response.status_code}"
        try:
            body: Any = response.json()
        except ValueError:
            return fallback
        if not isinstance(body, dict):
            return fallback
        error = body.get("error")
        if isinstance(error, str) and error:
            return error
        status = body.get("status")
        if isinstance(status, dict):
            nested = status.get("error_message")
            if isinstance(nested, str) and nested:
                return nested
        return fallback


__all__ = ["ResponseClassifier"]
