"""Normalized data shapes shared by the fetch, retry, and polling layers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class Endpoint(str, Enum):
    """Which configured base URL a request targets."""

    PRIMARY = "primary"
    BACKUP = "backup"


@dataclass(frozen=True)
class FetchRequest:
    """Immutable description of a single fetch attempt."""

    endpoint: Endpoint
    base_url: str
    vs_currency: str = "usd"
    order: str = "market_cap_desc"
    per_page: int = 100
    page: int = 1
    precision: int = 2
    attempt: int = 0
    timeout_seconds: float = 20.0

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}/coins/markets"

    def params(self) -> Dict[str, str]:
        return {
            "vs_currency": self.vs_currency,
            "order": self.order,
            "per_page": str(self.per_page),
            "page": str(self.page),
            "sparkline": "false",
            "locale": "en",
            "precision": str(self.precision),
        }


def _required_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"field '{key}' must be a non-empty string")
    return value


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    # json accepts NaN, Infinity and integers too large for a float
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _required_number(payload: Mapping[str, Any], key: str) -> float:
    value = payload.get(key)
    if not _is_number(value):
        raise ValueError(f"field '{key}' must be numeric")
    return float(value)


def _optional_number(payload: Mapping[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if value is None:
        return None
    if not _is_number(value):
        raise ValueError(f"field '{key}' must be numeric or null")
    return float(value)


@dataclass(frozen=True)
class CryptoAsset:
    """A single validated market entry from the ``coins/markets`` listing."""

    id: str
    symbol: str
    name: str
    image: str
    current_price: float
    market_cap: float
    price_change_percentage_24h: Optional[float] = None
    total_volume: Optional[float] = None
    market_cap_rank: Optional[int] = None
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None
    circulating_supply: Optional[float] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: Any) -> "CryptoAsset":
        """Validate one wire object, raising ``ValueError`` when it is unusable."""

        if not isinstance(payload, Mapping):
            raise ValueError("market entry must be an object")
        rank = _optional_number(payload, "market_cap_rank")
        return cls(
            id=_required_str(payload, "id"),
            symbol=_required_str(payload, "symbol"),
            name=_required_str(payload, "name"),
            image=_required_str(payload, "image"),
            current_price=_required_number(payload, "current_price"),
            market_cap=_required_number(payload, "market_cap"),
            price_change_percentage_24h=_optional_number(payload, "price_change_percentage_24h"),
            total_volume=_optional_number(payload, "total_volume"),
            market_cap_rank=int(rank) if rank is not None else None,
            high_24h=_optional_number(payload, "high_24h"),
            low_24h=_optional_number(payload, "low_24h"),
            circulating_supply=_optional_number(payload, "circulating_supply"),
            raw=dict(payload),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "name": self.name,
            "image": self.image,
            "current_price": self.current_price,
            "price_change_percentage_24h": self.price_change_percentage_24h,
            "market_cap": self.market_cap,
            "total_volume": self.total_volume,
            "market_cap_rank": self.market_cap_rank,
            "high_24h": self.high_24h,
            "low_24h": self.low_24h,
            "circulating_supply": self.circulating_supply,
        }


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Outcome:
    """Classified result of exactly one fetch attempt."""

    kind: OutcomeKind
    assets: Tuple[CryptoAsset, ...] = ()
    reason: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def success(cls, assets: Tuple[CryptoAsset, ...], status_code: int = 200) -> "Outcome":
        return cls(OutcomeKind.SUCCESS, assets=assets, status_code=status_code)

    @classmethod
    def transient(cls, reason: str, status_code: Optional[int] = None) -> "Outcome":
        return cls(OutcomeKind.TRANSIENT, reason=reason, status_code=status_code)

    @classmethod
    def rate_limited(cls, reason: Optional[str] = None) -> "Outcome":
        return cls(OutcomeKind.RATE_LIMITED, reason=reason, status_code=429)

    @classmethod
    def forbidden(cls, reason: Optional[str] = None) -> "Outcome":
        return cls(OutcomeKind.FORBIDDEN, reason=reason, status_code=403)

    @classmethod
    def not_found(cls, reason: Optional[str] = None) -> "Outcome":
        return cls(OutcomeKind.NOT_FOUND, reason=reason, status_code=404)

    @classmethod
    def malformed(cls, reason: str, status_code: Optional[int] = None) -> "Outcome":
        return cls(OutcomeKind.MALFORMED, reason=reason, status_code=status_code)

    @classmethod
    def timeout(cls, reason: str = "request timed out") -> "Outcome":
        return cls(OutcomeKind.TIMEOUT, reason=reason)


@dataclass
class RetryState:
    """Mutable bookkeeping for one poll cycle."""

    endpoint: Endpoint = Endpoint.PRIMARY
    attempt: int = 0
    switched: bool = False
    cumulative_delay: float = 0.0


@dataclass(frozen=True)
class RetryStatus:
    """In-progress notice published before each retry wait."""

    delay_seconds: float
    attempt: int
    max_retries: int
    endpoint: Endpoint
    reason: Optional[str] = None

    @property
    def message(self) -> str:
        return (
            f"Retrying in {self.delay_seconds:g} seconds... "
            f"(Attempt {self.attempt}/{self.max_retries})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delay_seconds": self.delay_seconds,
            "attempt": self.attempt,
            "max_retries": self.max_retries,
            "endpoint": self.endpoint.value,
            "reason": self.reason,
            "message": self.message,
        }


@dataclass(frozen=True)
class PollCycleResult:
    """Settled outcome of a cycle: fresh assets or a terminal error."""

    endpoint: Endpoint
    settled_at: datetime
    assets: Tuple[CryptoAsset, ...] = ()
    retries: int = 0
    error: Optional[str] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


__all__ = [
    "Endpoint",
    "FetchRequest",
    "CryptoAsset",
    "OutcomeKind",
    "Outcome",
    "RetryState",
    "RetryStatus",
    "PollCycleResult",
]
