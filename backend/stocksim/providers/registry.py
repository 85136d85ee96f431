"""
Static provider table and the registry that binds configs to adapters.
"""

from __future__ import annotations

import logging

from ..core.history import HistoryFetcher
from ..models import ProviderConfig, ProviderOverride
from .base import QuoteProvider
from .eastmoney import EastMoneyProvider
from .sina import SinaProvider
from .tencent import TencentProvider
from .xueqiu import XueqiuProvider

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_CONFIGS: dict[str, ProviderConfig] = {
    "tencent": ProviderConfig(
        name="tencent",
        display_name="腾讯财经",
        base_url="http://qt.gtimg.cn/q=",
        max_calls_per_minute=60,
        max_calls_per_hour=1000,
        max_retries=3,
        timeout_sec=15.0,
        supports_realtime=True,
        supports_historical=False,
    ),
    "eastmoney": ProviderConfig(
        name="eastmoney",
        display_name="东方财富",
        base_url="http://push2his.eastmoney.com/api/qt/stock/kline/get",
        max_calls_per_minute=30,
        max_calls_per_hour=500,
        max_retries=3,
        timeout_sec=20.0,
        supports_realtime=False,
        supports_historical=True,
    ),
    "sina": ProviderConfig(
        name="sina",
        display_name="新浪财经",
        base_url="https://hq.sinajs.cn/list=",
        max_calls_per_minute=50,
        max_calls_per_hour=800,
        max_retries=3,
        timeout_sec=15.0,
        supports_realtime=True,
        supports_historical=False,
    ),
    "xueqiu": ProviderConfig(
        name="xueqiu",
        display_name="雪球",
        base_url="https://stock.xueqiu.com/v5/stock/quote.json",
        max_calls_per_minute=40,
        max_calls_per_hour=600,
        max_retries=3,
        timeout_sec=20.0,
        supports_realtime=True,
        supports_historical=True,
    ),
}

DEFAULT_ROTATION: list[str] = ["tencent", "eastmoney", "sina", "xueqiu"]

PROVIDER_CLASSES: dict[str, type[QuoteProvider]] = {
    "tencent": TencentProvider,
    "eastmoney": EastMoneyProvider,
    "sina": SinaProvider,
    "xueqiu": XueqiuProvider,
}


def apply_override(config: ProviderConfig, override: ProviderOverride | None) -> ProviderConfig:
    if override is None:
        return config
    changes = override.model_dump(exclude_none=True)
    if not changes:
        return config
    return config.model_copy(update=changes)


class ProviderRegistry:
    """
    Holds provider configs and one adapter instance per provider.

    The rotation order is fixed at construction; names outside the static
    table are rejected.
    """

    def __init__(
        self,
        history: HistoryFetcher | None = None,
        order: list[str] | None = None,
        overrides: dict[str, ProviderOverride] | None = None,
        providers: dict[str, QuoteProvider] | None = None,
    ):
        self._order = list(order or DEFAULT_ROTATION)
        unknown = [name for name in self._order if name not in DEFAULT_PROVIDER_CONFIGS]
        if unknown:
            raise ValueError(f"unknown providers in rotation: {unknown}")

        overrides = overrides or {}
        self._configs = {
            name: apply_override(DEFAULT_PROVIDER_CONFIGS[name], overrides.get(name)) for name in self._order
        }
        self._providers: dict[str, QuoteProvider] = {}
        for name in self._order:
            if providers and name in providers:
                self._providers[name] = providers[name]
            else:
                self._providers[name] = PROVIDER_CLASSES[name](self._configs[name], history)
        logger.debug(f"Provider rotation: {self._order}")

    def names(self) -> list[str]:
        return list(self._order)

    def get_config(self, name: str) -> ProviderConfig:
        return self._configs[name]

    def get_provider(self, name: str) -> QuoteProvider:
        return self._providers[name]

    def configs(self) -> dict[str, ProviderConfig]:
        return dict(self._configs)

    def history_sources(self) -> list[str]:
        return [name for name in self._order if self._configs[name].supports_historical]
