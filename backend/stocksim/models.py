from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

Period = Literal["daily", "weekly", "monthly"]
ProviderName = Literal["tencent", "eastmoney", "sina", "xueqiu"]
RateWindowMode = Literal["sliding", "lenient"]
FailureKind = Literal["transport", "parse"]
TradeSide = Literal["buy", "sell"]

PERIODS: tuple[str, ...] = ("daily", "weekly", "monthly")


class CamelModel(BaseModel):
    """Models persisted in the local key-value store use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiErrorPayload(BaseModel):
    code: str
    message: str
    degraded: bool | None = None
    degraded_reason: str | None = None
    trace_id: str | None = None


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: ProviderName
    display_name: str
    base_url: str
    max_calls_per_minute: int = Field(default=60, gt=0)
    max_calls_per_hour: int = Field(default=1000, gt=0)
    max_retries: int = Field(default=3, ge=0)
    timeout_sec: float = Field(default=15.0, gt=0)
    supports_realtime: bool = True
    supports_historical: bool = False


class CallRecord(BaseModel):
    provider: str
    timestamp: float
    success: bool
    response_time_ms: int
    error: str | None = None
    error_kind: FailureKind | None = None


class ProviderStats(BaseModel):
    provider: str
    display_name: str
    total_calls: int
    success_rate_percent: float
    avg_response_time_ms: int
    recent_call_count: int = 0


class Quote(CamelModel):
    code: str
    name: str
    current_price: float = 0.0
    previous_close: float = 0.0
    change: float = 0.0
    change_percent: float = 0.0
    historical_prices: list[float] = Field(default_factory=list)
    historical_dates: list[str] = Field(default_factory=list)
    has_data: bool = False
    cache_timestamp: datetime | None = None
    source: str | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> Quote:
        if len(self.historical_prices) != len(self.historical_dates):
            raise ValueError("historical_prices and historical_dates must have the same length")
        if not self.has_data:
            numeric = (self.current_price, self.previous_close, self.change, self.change_percent)
            if any(value != 0 for value in numeric) or self.historical_prices:
                raise ValueError("a quote without data must be zero-valued")
        return self

    @classmethod
    def empty(cls, code: str, name: str | None = None) -> Quote:
        return cls(code=code, name=name or code, has_data=False)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, text: str) -> Quote:
        return cls.model_validate_json(text)


class StockCatalogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    industry: str


class Industry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    code: str
    stocks: tuple[StockCatalogEntry, ...]


class PortfolioItem(CamelModel):
    stock_code: str
    quantity: int = Field(gt=0)
    average_price: float = Field(ge=0)


class SellRecord(CamelModel):
    stock_code: str
    stock_name: str
    quantity: int
    price: float
    amount: float
    time: datetime = Field(
        validation_alias=AliasChoices("isoTime", "time"),
        serialization_alias="isoTime",
    )


class PortfolioPosition(BaseModel):
    stock_code: str
    stock_name: str
    quantity: int
    average_price: float
    current_price: float
    market_value: float
    pnl_amount: float
    pnl_ratio: float


class PortfolioSnapshot(BaseModel):
    available_funds: float
    initial_funds: float
    unlocked_limit: float
    position_value: float
    total_assets: float
    profit_rate: float
    positions: list[PortfolioPosition]


class TradeRequest(BaseModel):
    code: str = Field(min_length=4, max_length=16)
    quantity: int
    period: Period = "daily"


class TradeResponse(BaseModel):
    side: TradeSide
    code: str
    name: str
    quantity: int
    price: float
    amount: float
    available_funds: float
    unlocked_limit: float
    limit_raised: bool = False


class SellRecordsResponse(BaseModel):
    items: list[SellRecord]
    total: int


class PortfolioResetResponse(BaseModel):
    success: Literal[True]
    available_funds: float
    unlocked_limit: float


class ProviderOverride(BaseModel):
    max_calls_per_minute: int | None = Field(default=None, gt=0)
    max_calls_per_hour: int | None = Field(default=None, gt=0)
    timeout_sec: float | None = Field(default=None, gt=0)


class AppConfig(BaseModel):
    state_path: str = ""
    max_attempts: int = Field(default=4, ge=1, le=16)
    rate_window_mode: RateWindowMode = "sliding"
    synthetic_history: bool = False
    refresh_interval_sec: float = Field(default=60.0, ge=1.0)
    initial_funds: float = Field(default=500_000.0, gt=0)
    cache_ttl_days: int = Field(default=365, ge=1)
    provider_order: list[ProviderName] = Field(
        default_factory=lambda: ["tencent", "eastmoney", "sina", "xueqiu"]
    )
    provider_overrides: dict[str, ProviderOverride] = Field(default_factory=dict)
    cors_origins: list[str] = Field(default_factory=list)
