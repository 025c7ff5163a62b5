"""Endpoint and query descriptions for the remote market data source."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from .models import Endpoint, FetchRequest

DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Cache-Control": "no-cache",
}


@dataclass(frozen=True)
class MarketEndpoints:
    """Primary/backup base URLs for the markets listing.

    Attributes:
        primary: Base URL tried at the start of a fresh session.
        backup: Mirror used after the primary refuses access or stops answering.
    """

    primary: str = DEFAULT_BASE_URL
    backup: str = DEFAULT_BASE_URL

    def base_url(self, endpoint: Endpoint) -> str:
        return self.primary if endpoint is Endpoint.PRIMARY else self.backup


@dataclass(frozen=True)
class MarketsQuery:
    """Query parameters sent with every ``coins/markets`` request."""

    vs_currency: str = "usd"
    order: str = "market_cap_desc"
    per_page: int = 100
    page: int = 1
    precision: int = 2

    def request(
        self,
        endpoints: MarketEndpoints,
        endpoint: Endpoint,
        attempt: int,
        timeout_seconds: float,
    ) -> FetchRequest:
        """Build the immutable request for one attempt."""

        return FetchRequest(
            endpoint=endpoint,
            base_url=endpoints.base_url(endpoint),
            vs_currency=self.vs_currency,
            order=self.order,
            per_page=self.per_page,
            page=self.page,
            precision=self.precision,
            attempt=attempt,
            timeout_seconds=timeout_seconds,
        )


class HttpSession(Protocol):
    """The slice of ``requests.Session`` the fetcher relies on."""

    def get(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> Any:
        """Issue a blocking GET request."""


__all__ = ["MarketEndpoints", "MarketsQuery", "HttpSession", "DEFAULT_BASE_URL", "DEFAULT_HEADERS"]
