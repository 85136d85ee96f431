from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from provider_fakes import FakeMarket
from stocksim.kv_store import JsonFileStore
from stocksim.models import AppConfig, ProviderOverride, Quote
from stocksim.stock_service import AllProvidersExhausted, StockService


def _service(tmp_path: Path, market: FakeMarket, **config_updates) -> StockService:
    config = AppConfig(**config_updates)
    return StockService(config, store=JsonFileStore(tmp_path / "state.json"), client=market.client())


def test_first_provider_success_returns_quote_with_history(tmp_path: Path) -> None:
    market = FakeMarket()
    service = _service(tmp_path, market)

    quote = asyncio.run(service.get_quote("600036.SH"))

    assert quote.has_data is True
    assert quote.source == "tencent"
    assert quote.name == "招商银行"
    assert quote.current_price == 35.68
    assert quote.change == pytest.approx(0.02)
    assert quote.change_percent == pytest.approx(0.0561, abs=1e-4)
    assert quote.historical_prices == [35.5, 35.66, 35.68]
    assert quote.cache_timestamp is not None
    assert service.cache.load("600036.SH") == quote
    assert service.latest_prices() == {"600036.SH": 35.68}
    assert market.calls("tencent") == 1


def test_failed_provider_rotates_to_next_and_records_both(tmp_path: Path) -> None:
    market = FakeMarket({"tencent": "transport"})
    service = _service(tmp_path, market)

    quote = asyncio.run(service.get_quote("600036.SH"))

    assert quote.source == "eastmoney"
    assert quote.current_price == 35.68
    assert quote.previous_close == 35.66
    tencent_calls = service.monitor.recent_calls("tencent")
    eastmoney_calls = service.monitor.recent_calls("eastmoney")
    assert [(row.success, row.error_kind) for row in tencent_calls] == [(False, "transport")]
    assert [row.success for row in eastmoney_calls] == [True]
    assert service.monitor.recent_calls("sina") == []


def test_failed_provider_is_tried_again_on_a_later_quote(tmp_path: Path) -> None:
    market = FakeMarket({"tencent": "transport"})
    service = _service(tmp_path, market)

    first = asyncio.run(service.get_quote("600036.SH"))
    assert first.source == "eastmoney"

    market.failures = {"eastmoney": "status", "sina": "status", "xueqiu": "status"}
    second = asyncio.run(service.get_quote("600036.SH"))

    assert second.source == "tencent"
    assert second.has_data is True
    assert market.calls("tencent") == 2
    assert [row.success for row in service.monitor.recent_calls("tencent")] == [False, True]
    assert [row.success for row in service.monitor.recent_calls("eastmoney")] == [True, False]


def test_unreadable_history_timestamps_do_not_break_the_quote(tmp_path: Path) -> None:
    market = FakeMarket(
        {"eastmoney": "status", "tencent_kline": "status"},
        payloads={"xueqiu_kline": {"data": {"item": [[1e30, 1.0, 35.5, 1.0, 1.0, 1]]}}},
    )
    service = _service(tmp_path, market)

    quote = asyncio.run(service.get_quote("600036.SH"))

    assert quote.source == "tencent"
    assert quote.has_data is True
    assert quote.current_price == 35.68
    assert quote.historical_prices == []


def test_parse_failure_is_tagged_and_rotation_continues(tmp_path: Path) -> None:
    market = FakeMarket({"tencent": "garbage", "eastmoney": "status"})
    service = _service(tmp_path, market)

    quote = asyncio.run(service.get_quote("600036.SH"))

    assert quote.source == "sina"
    assert service.monitor.recent_calls("tencent")[0].error_kind == "parse"
    assert service.monitor.recent_calls("eastmoney")[0].error == "HTTP 500"


def test_over_budget_provider_is_skipped_without_a_call(tmp_path: Path) -> None:
    market = FakeMarket()
    service = _service(tmp_path, market, provider_overrides={"tencent": ProviderOverride(max_calls_per_minute=1)})

    async def scenario() -> tuple[Quote, Quote]:
        first = await service.get_quote("600036.SH")
        second = await service.get_quote("000001.SZ")
        return first, second

    first, second = asyncio.run(scenario())
    assert first.source == "tencent"
    assert second.source == "eastmoney"
    assert market.calls("tencent") == 1


def test_all_failed_serves_stale_cache(tmp_path: Path) -> None:
    healthy = FakeMarket()
    service = _service(tmp_path, healthy)
    fresh = asyncio.run(service.get_quote("600036.SH"))

    down = FakeMarket({name: "transport" for name in ("tencent", "eastmoney", "sina", "xueqiu")})
    offline = _service(tmp_path, down)
    stale = asyncio.run(offline.get_quote("600036.SH"))

    assert stale == fresh
    assert stale.cache_timestamp == fresh.cache_timestamp
    assert sum(offline.monitor.total_calls(name) for name in offline.registry.names()) == 4


def test_all_failed_without_cache_returns_empty_quote(tmp_path: Path) -> None:
    down = FakeMarket({name: "status" for name in ("tencent", "eastmoney", "sina", "xueqiu")})
    service = _service(tmp_path, down)

    quote = asyncio.run(service.get_quote("600519.SH", "weekly"))
    assert quote.has_data is False
    assert quote.name == "贵州茅台"
    assert quote.current_price == 0.0
    assert quote.historical_prices == []

    with pytest.raises(AllProvidersExhausted) as exc_info:
        asyncio.run(service.require_quote("600519.SH"))
    assert exc_info.value.code == "ALL_PROVIDERS_EXHAUSTED"


def test_invalid_period_is_a_programming_error(tmp_path: Path) -> None:
    service = _service(tmp_path, FakeMarket())
    with pytest.raises(ValueError):
        asyncio.run(service.get_quote("600036.SH", "hourly"))


def test_provider_stats_keyed_by_display_name(tmp_path: Path) -> None:
    market = FakeMarket({"tencent": "transport"})
    service = _service(tmp_path, market)
    asyncio.run(service.get_quote("600036.SH"))

    stats = service.get_provider_stats()
    assert list(stats.keys()) == ["腾讯财经", "东方财富", "新浪财经", "雪球"]
    assert stats["腾讯财经"].total_calls == 1
    assert stats["腾讯财经"].success_rate_percent == 0.0
    assert stats["东方财富"].success_rate_percent == 100.0
    assert stats["雪球"].total_calls == 0


def test_refresh_loop_polls_until_closed(tmp_path: Path) -> None:
    market = FakeMarket()
    service = _service(tmp_path, market)
    updates: list[Quote] = []

    async def scenario() -> bool:
        service.start_refresh(["600036.SH", "000001.SZ"], interval_sec=0.01, on_update=updates.append)
        await asyncio.sleep(0.1)
        running = service.refreshing
        await service.aclose()
        return running

    assert asyncio.run(scenario()) is True
    assert service.refreshing is False
    assert len(updates) >= 2
    assert {quote.code for quote in updates} == {"600036.SH", "000001.SZ"}


def test_refresh_loop_survives_a_failing_listener(tmp_path: Path) -> None:
    market = FakeMarket()
    service = _service(tmp_path, market)
    seen: list[str] = []

    def listener(quote: Quote) -> None:
        seen.append(quote.code)
        raise RuntimeError("listener failed")

    async def scenario() -> bool:
        service.start_refresh(["600036.SH"], interval_sec=0.01, on_update=listener)
        await asyncio.sleep(0.1)
        running = service.refreshing
        await service.aclose()
        return running

    assert asyncio.run(scenario()) is True
    assert service.refreshing is False
    assert len(seen) >= 2


def test_aclose_closes_an_owned_client(tmp_path: Path) -> None:
    service = StockService(AppConfig(), store=JsonFileStore(tmp_path / "state.json"))

    async def scenario():
        client = service._get_client()
        await service.aclose()
        return client

    client = asyncio.run(scenario())
    assert client.is_closed is True
