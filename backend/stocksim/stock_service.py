"""
Quote orchestration: rotation over providers, call accounting, cache fallback
and the periodic refresh loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable

import httpx

from .catalog import find_stock_name, list_industries
from .core.call_monitor import CallMonitor
from .core.history import HistoryFetcher
from .core.quote_cache import QuoteCache
from .core.rotation import ProviderRotator
from .kv_store import JsonFileStore, KeyValueStore
from .models import PERIODS, AppConfig, Industry, Period, ProviderStats, Quote
from .providers.base import DEFAULT_HEADERS, FetchResult
from .providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

QuoteListener = Callable[[Quote], Awaitable[None] | None]


class AllProvidersExhausted(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class StockService:
    def __init__(
        self,
        config: AppConfig | None = None,
        store: KeyValueStore | None = None,
        client: httpx.AsyncClient | None = None,
        registry: ProviderRegistry | None = None,
        monitor: CallMonitor | None = None,
        history: HistoryFetcher | None = None,
        cache: QuoteCache | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.store = store or JsonFileStore(self.config.state_path or None)
        self.history = history or HistoryFetcher(synthetic=self.config.synthetic_history)
        self.registry = registry or ProviderRegistry(
            history=self.history,
            order=list(self.config.provider_order),
            overrides=self.config.provider_overrides,
        )
        self.monitor = monitor or CallMonitor(mode=self.config.rate_window_mode)
        self.rotator = ProviderRotator(self.registry.names())
        self.cache = cache or QuoteCache(self.store, ttl_days=self.config.cache_ttl_days)
        self._client = client
        self._owns_client = client is None
        self._latest: dict[str, Quote] = {}
        self._refresh_task: asyncio.Task[None] | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True, headers=DEFAULT_HEADERS)
        return self._client

    def list_industries(self) -> list[Industry]:
        return list_industries()

    async def get_quote(self, code: str, period: Period = "daily") -> Quote:
        """
        Fetch a quote, rotating across providers until one succeeds.

        After the attempt budget is spent the cached quote is returned as-is
        (stale, see ``cache_timestamp``). Without a cached quote an empty quote
        with ``has_data`` False is returned.
        """
        if period not in PERIODS:
            raise ValueError(f"unsupported period: {period}, expected one of {PERIODS}")

        client = self._get_client()
        configs = self.registry.configs()
        tried: set[str] = set()
        for attempt in range(1, self.config.max_attempts + 1):
            name = self.rotator.next_provider(self.monitor, configs, exclude=tried)
            config = configs[name]
            if name in tried or not self.monitor.can_call(name, config):
                logger.info(f"Attempt {attempt} for {code}: {config.display_name} over budget, skipping")
                self.rotator.advance()
                continue

            tried.add(name)
            provider = self.registry.get_provider(name)
            logger.debug(f"Attempt {attempt} for {code} via {config.display_name}")
            result = await provider.fetch_quote(client, code, period)
            if result.ok:
                quote = result.quote
                self.monitor.record_call(name, True, result.response_time_ms)
                logger.info(
                    f"Quote {code} from {config.display_name}: {quote.current_price} "
                    f"({result.response_time_ms} ms)"
                )
                stamped = self.cache.save(code, quote)
                self._latest[code] = stamped
                return stamped

            self._record_failure(name, result)
            self.rotator.advance()

        cached = self.cache.load(code)
        if cached is not None:
            logger.warning(f"All providers failed for {code}, serving cached quote from {cached.cache_timestamp}")
            self._latest.setdefault(code, cached)
            return cached
        logger.warning(f"All providers failed for {code} and no cached quote exists")
        return Quote.empty(code, find_stock_name(code))

    def _record_failure(self, name: str, result: FetchResult) -> None:
        kind = "parse" if result.status == "parse_error" else "transport"
        display_name = self.registry.get_config(name).display_name
        logger.warning(f"{display_name} failed [{kind}] after {result.response_time_ms} ms: {result.error}")
        self.monitor.record_call(name, False, result.response_time_ms, error=result.error, error_kind=kind)

    async def require_quote(self, code: str, period: Period = "daily") -> Quote:
        quote = await self.get_quote(code, period)
        if not quote.has_data:
            raise AllProvidersExhausted(
                "ALL_PROVIDERS_EXHAUSTED",
                f"暂无 {quote.name} 的行情数据，请稍后重试。",
            )
        return quote

    def get_provider_stats(self) -> dict[str, ProviderStats]:
        stats: dict[str, ProviderStats] = {}
        for name in self.registry.names():
            display_name = self.registry.get_config(name).display_name
            stats[display_name] = self.monitor.stats(name, display_name)
        return stats

    def latest_quotes(self) -> dict[str, Quote]:
        return dict(self._latest)

    def latest_prices(self) -> dict[str, float]:
        return {code: quote.current_price for code, quote in self._latest.items() if quote.has_data}

    async def refresh_once(self, codes: list[str], on_update: QuoteListener | None = None) -> list[Quote]:
        quotes: list[Quote] = []
        for code in codes:
            quote = await self.get_quote(code)
            quotes.append(quote)
            if on_update is not None:
                outcome = on_update(quote)
                if asyncio.iscoroutine(outcome):
                    await outcome
        return quotes

    async def _refresh_loop(self, codes: list[str], interval_sec: float, on_update: QuoteListener | None) -> None:
        while True:
            try:
                await self.refresh_once(codes, on_update)
            except Exception:
                logger.exception(f"Quote refresh for {len(codes)} codes failed, retrying in {interval_sec}s")
            await asyncio.sleep(interval_sec)

    def start_refresh(
        self,
        codes: list[str],
        interval_sec: float | None = None,
        on_update: QuoteListener | None = None,
    ) -> asyncio.Task[None]:
        """Start polling ``codes``; replaces any refresh loop already running."""
        self.stop_refresh()
        interval = interval_sec if interval_sec is not None else self.config.refresh_interval_sec
        self._refresh_task = asyncio.create_task(self._refresh_loop(list(codes), interval, on_update))
        return self._refresh_task

    def stop_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = None

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def aclose(self) -> None:
        task = self._refresh_task
        self.stop_refresh()
        try:
            if task is not None:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        except Exception:
            logger.exception("Quote refresh task ended with an error")
        finally:
            if self._client is not None and self._owns_client:
                await self._client.aclose()
                self._client = None
