from __future__ import annotations

import asyncio
import sys
from datetime import date, datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from provider_fakes import FakeMarket
from stocksim.core.history import PERIOD_WINDOWS, HistoryFetcher, period_window, synthetic_history


def _fetch(market: FakeMarket, fetcher: HistoryFetcher, code: str = "600036.SH", period: str = "daily", provider: str | None = None):
    async def scenario():
        async with market.client() as client:
            return await fetcher.fetch(client, code, period, provider=provider)

    return asyncio.run(scenario())


def _fetcher(**kwargs) -> HistoryFetcher:
    return HistoryFetcher(
        now_date=lambda: date(2024, 1, 5),
        now_datetime=lambda: datetime(2024, 1, 5, 15, 0, 0),
        **kwargs,
    )


def test_period_windows() -> None:
    assert (PERIOD_WINDOWS["daily"].days, PERIOD_WINDOWS["daily"].count) == (30, 30)
    assert (PERIOD_WINDOWS["weekly"].days, PERIOD_WINDOWS["weekly"].count) == (120, 40)
    assert PERIOD_WINDOWS["monthly"].eastmoney_klt == 103
    with pytest.raises(ValueError):
        period_window("yearly")


def test_xueqiu_kline_is_primary_source() -> None:
    market = FakeMarket()
    history = _fetch(market, _fetcher())

    assert history.prices == [35.5, 35.66, 35.68]
    assert market.calls("xueqiu_kline") == 1
    assert market.calls("eastmoney") == 0
    request = next(req for req in market.requests if FakeMarket.route(req) == "xueqiu_kline")
    assert request.url.params["symbol"] == "SH600036"
    assert request.url.params["period"] == "day"
    assert request.url.params["type"] == "before"
    assert request.url.params["count"] == "30"
    assert int(request.url.params["end"]) - int(request.url.params["begin"]) == 30 * 86400


def test_falls_back_to_eastmoney_then_tencent() -> None:
    market = FakeMarket({"xueqiu_kline": "status"})
    history = _fetch(market, _fetcher(), period="weekly")
    assert history.dates == ["2024-01-02", "2024-01-03", "2024-01-04"]
    request = next(req for req in market.requests if FakeMarket.route(req) == "eastmoney")
    assert request.url.params["secid"] == "1.600036"
    assert request.url.params["klt"] == "102"
    assert request.url.params["lmt"] == "40"

    market = FakeMarket({"xueqiu_kline": "transport", "eastmoney": "garbage"})
    history = _fetch(market, _fetcher())
    assert history.prices == [35.5, 35.66]
    assert market.calls("tencent_kline") == 1


def test_preferred_provider_goes_first() -> None:
    market = FakeMarket()
    _fetch(market, _fetcher(), provider="eastmoney")
    routes = [FakeMarket.route(req) for req in market.requests]
    assert routes == ["eastmoney"]


def test_all_sources_failing_yields_empty_history() -> None:
    market = FakeMarket({"xueqiu_kline": "transport", "eastmoney": "status", "tencent_kline": "garbage"})
    history = _fetch(market, _fetcher())
    assert history.prices == []
    assert history.dates == []


def test_synthetic_history_is_deterministic_and_opt_in() -> None:
    market = FakeMarket({"xueqiu_kline": "transport", "eastmoney": "transport", "tencent_kline": "transport"})
    history = _fetch(market, _fetcher(synthetic=True))

    assert len(history.prices) == 30
    assert history.dates[-1] == "2024-01-05"
    assert all(price > 0 for price in history.prices)
    assert history == synthetic_history("600036.SH", "daily", date(2024, 1, 5))
    assert synthetic_history("000001.SZ", "daily", date(2024, 1, 5)).prices != history.prices
