"""
Base interfaces and shared helpers for quote providers.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import httpx

from ..models import Period, ProviderConfig, Quote

if TYPE_CHECKING:
    from ..core.history import HistoryFetcher

CodeStyle = Literal["tencent", "eastmoney", "sina", "xueqiu"]
FetchStatus = Literal["ok", "transport_error", "parse_error"]

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    ),
    "Accept-Language": "zh-CN,zh;q=0.9",
}


@dataclass
class QuoteFragment:
    """Fields a parser managed to read from one provider payload."""

    name: str
    current_price: float
    previous_close: float
    prices: list[float] = field(default_factory=list)
    dates: list[str] = field(default_factory=list)


@dataclass
class ParseError:
    reason: str


@dataclass
class FetchResult:
    status: FetchStatus
    quote: Quote | None = None
    error: str | None = None
    response_time_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "ok" and self.quote is not None


def to_provider_code(code: str, style: CodeStyle) -> str:
    """
    Convert a catalog code like ``600036.SH`` into a provider's symbol.

    Args:
        code: Catalog code with exchange suffix
        style: Provider naming scheme

    Returns:
        Provider symbol, e.g. ``sh600036``, ``1.600036`` or ``SH600036``
    """
    raw = code.strip().upper()
    symbol, _, exchange = raw.partition(".")
    if exchange not in {"SH", "SZ", "HK"}:
        raise ValueError(f"unsupported exchange suffix in code: {code}")
    if style == "eastmoney":
        if exchange == "HK":
            raise ValueError(f"eastmoney does not serve code: {code}")
        return f"{'1' if exchange == 'SH' else '0'}.{symbol}"
    if style == "xueqiu":
        if exchange == "HK":
            return symbol
        return f"{exchange}{symbol}"
    if exchange == "HK" and style != "tencent":
        raise ValueError(f"{style} does not serve code: {code}")
    return f"{exchange.lower()}{symbol}"


def compute_change(current: float, previous: float) -> tuple[float, float]:
    change = current - previous
    change_percent = change / previous * 100 if previous != 0 else 0.0
    return change, change_percent


def parse_float(value: object) -> float | None:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def decode_gbk(response: httpx.Response) -> str:
    return response.content.decode("gbk", errors="replace")


def elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def build_quote(code: str, fragment: QuoteFragment, source: str) -> Quote:
    change, change_percent = compute_change(fragment.current_price, fragment.previous_close)
    return Quote(
        code=code,
        name=fragment.name,
        current_price=fragment.current_price,
        previous_close=fragment.previous_close,
        change=change,
        change_percent=change_percent,
        historical_prices=list(fragment.prices),
        historical_dates=list(fragment.dates),
        has_data=True,
        source=source,
    )


class QuoteProvider(ABC):
    """
    Abstract base class for realtime quote providers.

    Each adapter owns one wire format. Fetching never raises for expected
    failures; it returns a FetchResult describing what happened.
    """

    name: str = ""

    def __init__(self, config: ProviderConfig, history: HistoryFetcher | None = None):
        self.config = config
        self.history = history

    @property
    def display_name(self) -> str:
        return self.config.display_name

    @abstractmethod
    async def request(self, client: httpx.AsyncClient, code: str, period: Period) -> httpx.Response:
        """
        Issue the provider request for one code.

        Args:
            client: Shared async HTTP client
            code: Catalog code, e.g. "600036.SH"
            period: Chart period requested by the caller

        Returns:
            Raw HTTP response
        """
        pass

    @abstractmethod
    def parse(self, response: httpx.Response, code: str) -> QuoteFragment | ParseError:
        pass

    async def attach_history(
        self,
        client: httpx.AsyncClient,
        code: str,
        period: Period,
        fragment: QuoteFragment,
    ) -> QuoteFragment:
        if fragment.prices or self.history is None:
            return fragment
        preferred = self.name if self.config.supports_historical else None
        series = await self.history.fetch(client, code, period, provider=preferred)
        fragment.prices = list(series.prices)
        fragment.dates = list(series.dates)
        return fragment

    async def fetch_quote(self, client: httpx.AsyncClient, code: str, period: Period) -> FetchResult:
        started = time.perf_counter()
        try:
            response = await self.request(client, code, period)
        except httpx.HTTPError as exc:
            return FetchResult(
                status="transport_error",
                error=f"{type(exc).__name__}: {exc}",
                response_time_ms=elapsed_ms(started),
            )
        except ValueError as exc:
            return FetchResult(status="parse_error", error=str(exc), response_time_ms=elapsed_ms(started))

        if response.status_code != 200:
            return FetchResult(
                status="transport_error",
                error=f"HTTP {response.status_code}",
                response_time_ms=elapsed_ms(started),
            )

        parsed = self.parse(response, code)
        response_time_ms = elapsed_ms(started)
        if isinstance(parsed, ParseError):
            return FetchResult(status="parse_error", error=parsed.reason, response_time_ms=response_time_ms)

        fragment = await self.attach_history(client, code, period, parsed)
        return FetchResult(
            status="ok",
            quote=build_quote(code, fragment, self.name),
            response_time_ms=response_time_ms,
        )
