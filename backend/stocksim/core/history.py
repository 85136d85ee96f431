"""
Historical price series for the quote chart.

Series are fetched from an ordered list of kline sources. The first source
that produces a non-empty series wins. When every source fails the chart is
simply unavailable, unless synthetic demo data is switched on.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable

import httpx
import numpy as np

from ..models import PERIODS, Period
from ..providers.base import DEFAULT_HEADERS, ParseError, parse_float, to_provider_code
from ..providers.xueqiu import XUEQIU_HEADERS, ensure_xueqiu_session

logger = logging.getLogger(__name__)

XUEQIU_KLINE_URL = "https://stock.xueqiu.com/v5/stock/chart/kline.json"
EASTMONEY_KLINE_URL = "http://push2his.eastmoney.com/api/qt/stock/kline/get"
TENCENT_KLINE_URL = "https://web.ifzq.gtimg.cn/appstock/app/fqkline/get"


@dataclass(frozen=True)
class PeriodWindow:
    days: int
    count: int
    xueqiu: str
    eastmoney_klt: int
    tencent: str


PERIOD_WINDOWS: dict[str, PeriodWindow] = {
    "daily": PeriodWindow(days=30, count=30, xueqiu="day", eastmoney_klt=101, tencent="day"),
    "weekly": PeriodWindow(days=120, count=40, xueqiu="week", eastmoney_klt=102, tencent="week"),
    "monthly": PeriodWindow(days=730, count=24, xueqiu="month", eastmoney_klt=103, tencent="month"),
}


@dataclass
class PriceHistory:
    prices: list[float] = field(default_factory=list)
    dates: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.prices)

    def tail(self, count: int) -> PriceHistory:
        if len(self.prices) <= count:
            return self
        return PriceHistory(prices=self.prices[-count:], dates=self.dates[-count:])


def period_window(period: str) -> PeriodWindow:
    if period not in PERIOD_WINDOWS:
        raise ValueError(f"unsupported period: {period}, expected one of {PERIODS}")
    return PERIOD_WINDOWS[period]


def _timestamp_to_date(value: Any) -> str | None:
    ts = parse_float(value)
    if ts is None:
        return None
    # Xueqiu normally reports milliseconds.
    if ts > 1e11:
        ts = ts / 1000
    try:
        return datetime.fromtimestamp(ts).strftime("%Y-%m-%d")
    except (OverflowError, OSError, ValueError):
        return None


def parse_xueqiu_kline(payload: Any) -> PriceHistory | ParseError:
    """Parse ``{data: {item: [[ts, open, close, high, low, volume], ...]}}``."""
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        return ParseError("xueqiu kline payload has no data")
    items = payload["data"].get("item")
    if items is None:
        return ParseError("xueqiu kline payload has no item list")
    if not isinstance(items, list):
        return ParseError("xueqiu kline item is not a list")

    history = PriceHistory()
    for row in items:
        if not isinstance(row, list) or len(row) < 3:
            continue
        day = _timestamp_to_date(row[0])
        close = parse_float(row[2])
        if day is None or close is None:
            continue
        history.prices.append(close)
        history.dates.append(day)
    return history


def parse_eastmoney_klines(payload: Any) -> tuple[str, PriceHistory] | ParseError:
    """
    Parse an EastMoney kline payload.

    Each kline is ``"date,open,close,high,low,volume,..."``. Rows with fewer
    than five fields are skipped.

    Returns:
        (name, history) where name is empty when the payload omits it
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        return ParseError("eastmoney payload has no data")
    data = payload["data"]
    klines = data.get("klines")
    if not isinstance(klines, list):
        return ParseError("eastmoney payload has no klines")

    history = PriceHistory()
    for line in klines:
        fields = str(line).split(",")
        if len(fields) < 5:
            continue
        close = parse_float(fields[2])
        if close is None:
            continue
        history.prices.append(close)
        history.dates.append(fields[0].strip())
    return str(data.get("name") or "").strip(), history


def parse_tencent_kline(payload: Any, symbol: str, period_key: str) -> PriceHistory | ParseError:
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        return ParseError("tencent kline payload has no data")
    node = payload["data"].get(symbol)
    if not isinstance(node, dict):
        return ParseError(f"tencent kline payload has no entry for {symbol}")
    rows = node.get(f"qfq{period_key}") or node.get(period_key)
    if not isinstance(rows, list):
        return ParseError("tencent kline payload has no rows")

    history = PriceHistory()
    for row in rows:
        if not isinstance(row, list) or len(row) < 3:
            continue
        close = parse_float(row[2])
        if close is None:
            continue
        history.prices.append(close)
        history.dates.append(str(row[0]))
    return history


def synthetic_history(code: str, period: str, today: date) -> PriceHistory:
    """
    Deterministic demo series for a code.

    A random walk of +/-5% steps from a base price between 10 and 90, seeded
    by a stable hash of the code so every run draws the same chart.
    """
    window = period_window(period)
    seed = int.from_bytes(hashlib.sha256(code.encode("utf-8")).digest()[:8], "big")
    rng = np.random.default_rng(seed)
    price = 10.0 + float(rng.random()) * 80.0
    points = window.days + 1

    prices: list[float] = []
    dates: list[str] = []
    for offset in range(points):
        day = today - timedelta(days=window.days - offset)
        price = price * (1 + (float(rng.random()) - 0.5) * 0.1)
        prices.append(round(price, 2))
        dates.append(day.isoformat())
    return PriceHistory(prices=prices, dates=dates).tail(window.count)


Strategy = Callable[[httpx.AsyncClient, str, PeriodWindow], Awaitable["PriceHistory | ParseError"]]


class HistoryFetcher:
    """Fetches price history from several kline sources in a fixed order."""

    def __init__(
        self,
        timeout_sec: float = 15.0,
        synthetic: bool = False,
        now_date: Callable[[], date] | None = None,
        now_datetime: Callable[[], datetime] | None = None,
    ):
        self.timeout_sec = timeout_sec
        self.synthetic = synthetic
        self._now_date = now_date or date.today
        self._now_datetime = now_datetime or datetime.now
        self._strategies: dict[str, Strategy] = {
            "xueqiu": self._fetch_xueqiu,
            "eastmoney": self._fetch_eastmoney,
            "tencent": self._fetch_tencent,
        }

    @property
    def source_order(self) -> list[str]:
        return list(self._strategies.keys())

    def ordered_sources(self, provider: str | None = None) -> list[str]:
        order = self.source_order
        if provider in self._strategies:
            order.remove(provider)
            order.insert(0, provider)
        return order

    async def fetch(
        self,
        client: httpx.AsyncClient,
        code: str,
        period: Period,
        provider: str | None = None,
    ) -> PriceHistory:
        window = period_window(period)
        for source in self.ordered_sources(provider):
            strategy = self._strategies[source]
            try:
                result = await strategy(client, code, window)
            except httpx.HTTPError as exc:
                logger.info(f"History source {source} failed for {code}: {type(exc).__name__}: {exc}")
                continue
            except ValueError as exc:
                logger.info(f"History source {source} returned unreadable data for {code}: {exc}")
                continue
            if isinstance(result, ParseError):
                logger.info(f"History source {source} unusable for {code}: {result.reason}")
                continue
            if len(result) == 0:
                continue
            return result.tail(window.count)

        if self.synthetic:
            logger.warning(f"All history sources failed for {code}, using synthetic demo series")
            return synthetic_history(code, period, self._now_date())
        logger.info(f"No history available for {code} ({period})")
        return PriceHistory()

    async def _fetch_xueqiu(self, client: httpx.AsyncClient, code: str, window: PeriodWindow) -> PriceHistory | ParseError:
        await ensure_xueqiu_session(client, timeout=self.timeout_sec)
        end = self._now_datetime()
        begin = end - timedelta(days=window.days)
        response = await client.get(
            XUEQIU_KLINE_URL,
            params={
                "symbol": to_provider_code(code, "xueqiu"),
                "begin": int(begin.timestamp()),
                "end": int(end.timestamp()),
                "period": window.xueqiu,
                "type": "before",
                "count": window.count,
            },
            headers=XUEQIU_HEADERS,
            timeout=self.timeout_sec,
        )
        if response.status_code != 200:
            return ParseError(f"HTTP {response.status_code}")
        return parse_xueqiu_kline(response.json())

    async def _fetch_eastmoney(self, client: httpx.AsyncClient, code: str, window: PeriodWindow) -> PriceHistory | ParseError:
        response = await client.get(
            EASTMONEY_KLINE_URL,
            params=eastmoney_kline_params(code, window),
            headers=DEFAULT_HEADERS,
            timeout=self.timeout_sec,
        )
        if response.status_code != 200:
            return ParseError(f"HTTP {response.status_code}")
        parsed = parse_eastmoney_klines(response.json())
        if isinstance(parsed, ParseError):
            return parsed
        return parsed[1]

    async def _fetch_tencent(self, client: httpx.AsyncClient, code: str, window: PeriodWindow) -> PriceHistory | ParseError:
        symbol = to_provider_code(code, "tencent")
        response = await client.get(
            TENCENT_KLINE_URL,
            params={"param": f"{symbol},{window.tencent},,,{window.count},qfq"},
            headers=DEFAULT_HEADERS,
            timeout=self.timeout_sec,
        )
        if response.status_code != 200:
            return ParseError(f"HTTP {response.status_code}")
        return parse_tencent_kline(response.json(), symbol, window.tencent)


def eastmoney_kline_params(code: str, window: PeriodWindow) -> dict[str, Any]:
    return {
        "secid": to_provider_code(code, "eastmoney"),
        "fields1": "f1,f2,f3,f4,f5,f6",
        "fields2": "f51,f52,f53,f54,f55,f56",
        "klt": window.eastmoney_klt,
        "fqt": 1,
        "end": "20500101",
        "lmt": window.count,
    }
