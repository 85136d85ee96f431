"""
Virtual-cash portfolio ledger.

State lives in the key-value store under ``availableFunds``, ``initialFunds``,
``unlockedLimit``, ``portfolio`` and ``sellRecords``. A failed trade leaves
every key untouched.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from threading import RLock
from typing import Callable

from pydantic import ValidationError

from .kv_store import KeyValueStore
from .models import PortfolioItem, PortfolioPosition, PortfolioSnapshot, Quote, SellRecord

logger = logging.getLogger(__name__)

DEFAULT_FUNDS = 500_000.0
BASE_LIMIT = 500_000.0
LOT_SIZE = 100

# (total assets threshold, unlocked limit), highest first.
UNLOCK_TIERS: tuple[tuple[float, float], ...] = (
    (650_000.0, 5_000_000.0),
    (600_000.0, 2_000_000.0),
    (550_000.0, 1_000_000.0),
)

KEY_AVAILABLE_FUNDS = "availableFunds"
KEY_INITIAL_FUNDS = "initialFunds"
KEY_UNLOCKED_LIMIT = "unlockedLimit"
KEY_PORTFOLIO = "portfolio"
KEY_SELL_RECORDS = "sellRecords"


class TradeError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def format_funds(amount: float) -> str:
    if amount >= 10_000:
        return f"{amount / 10_000:.2f}万"
    return f"{amount:.2f}"


def limit_for_assets(total_assets: float) -> float:
    for threshold, limit in UNLOCK_TIERS:
        if total_assets >= threshold:
            return limit
    return BASE_LIMIT


class PortfolioLedger:
    def __init__(
        self,
        store: KeyValueStore,
        initial_funds: float = DEFAULT_FUNDS,
        now_datetime: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self._default_funds = float(initial_funds)
        self._now = now_datetime or datetime.now
        self._lock = RLock()
        self._load()

    def _read_float(self, key: str, default: float) -> float:
        raw = self.store.get(key)
        if raw is None:
            return default
        try:
            return float(raw)
        except ValueError:
            logger.warning(f"Ledger key {key} is not a number, using {default}")
            return default

    def _load(self) -> None:
        self.available_funds = self._read_float(KEY_AVAILABLE_FUNDS, self._default_funds)
        self.initial_funds = self._read_float(KEY_INITIAL_FUNDS, self._default_funds)
        self.unlocked_limit = self._read_float(KEY_UNLOCKED_LIMIT, BASE_LIMIT)
        if self.unlocked_limit < BASE_LIMIT:
            self.unlocked_limit = BASE_LIMIT
            self.store.set(KEY_UNLOCKED_LIMIT, str(self.unlocked_limit))
        self.items = self._load_list(KEY_PORTFOLIO, PortfolioItem)
        self.sell_records = self._load_list(KEY_SELL_RECORDS, SellRecord)

    def _load_list(self, key: str, model: type[PortfolioItem] | type[SellRecord]) -> list:
        raw = self.store.get(key)
        if raw is None:
            return []
        try:
            rows = json.loads(raw)
            if not isinstance(rows, list):
                raise ValueError(f"{key} is not a list")
            return [model.model_validate(row) for row in rows]
        except (ValueError, ValidationError) as exc:
            logger.error(f"Failed to load ledger key {key}: {exc}")
            return []

    def _dump_list(self, rows: list) -> str:
        return json.dumps(
            [row.model_dump(mode="json", by_alias=True) for row in rows],
            ensure_ascii=False,
        )

    def _persist(self) -> None:
        self.store.set_many(
            {
                KEY_AVAILABLE_FUNDS: str(self.available_funds),
                KEY_INITIAL_FUNDS: str(self.initial_funds),
                KEY_UNLOCKED_LIMIT: str(self.unlocked_limit),
                KEY_PORTFOLIO: self._dump_list(self.items),
                KEY_SELL_RECORDS: self._dump_list(self.sell_records),
            }
        )

    def find_item(self, code: str) -> PortfolioItem | None:
        for item in self.items:
            if item.stock_code == code:
                return item
        return None

    def _price_for(self, item: PortfolioItem, prices: dict[str, float]) -> float:
        # Positions without a fresh quote are valued at cost.
        price = prices.get(item.stock_code)
        return float(price) if price else item.average_price

    def position_value(self, prices: dict[str, float]) -> float:
        return sum(self._price_for(item, prices) * item.quantity for item in self.items)

    def total_assets(self, prices: dict[str, float]) -> float:
        return self.available_funds + self.position_value(prices)

    def profit_rate(self, prices: dict[str, float]) -> float:
        """Percent gain of total assets over the initial funds."""
        if self.initial_funds <= 0:
            return 0.0
        return (self.total_assets(prices) - self.initial_funds) / self.initial_funds * 100

    def max_buyable(self, price: float) -> int:
        if price <= 0:
            return 0
        return int(self.available_funds // price) // LOT_SIZE * LOT_SIZE

    def buy(self, quote: Quote, quantity: int, prices: dict[str, float]) -> float:
        """
        Buy ``quantity`` shares at the quote's current price.

        Returns:
            Cost of the purchase
        """
        with self._lock:
            if not quote.has_data or quote.current_price <= 0:
                raise TradeError("NO_QUOTE_DATA", "暂无行情数据，无法交易")
            if quantity <= 0 or quantity % LOT_SIZE != 0:
                raise TradeError("INVALID_QUANTITY", "买入数量必须是100的整数倍")

            cost = round(quote.current_price * quantity, 2)
            if self.available_funds < cost:
                raise TradeError("INSUFFICIENT_FUNDS", "资金不足")

            holdings = self.position_value(prices)
            if holdings + cost > self.unlocked_limit:
                raise TradeError(
                    "OVER_POSITION_LIMIT",
                    f"超过额度限制，当前持仓已使用 {format_funds(holdings)}，额度: {format_funds(self.unlocked_limit)}",
                )

            existing = self.find_item(quote.code)
            if existing is not None:
                new_quantity = existing.quantity + quantity
                merged = PortfolioItem(
                    stock_code=quote.code,
                    quantity=new_quantity,
                    average_price=(existing.average_price * existing.quantity + cost) / new_quantity,
                )
                self.items = [merged if item.stock_code == quote.code else item for item in self.items]
            else:
                self.items.append(
                    PortfolioItem(stock_code=quote.code, quantity=quantity, average_price=quote.current_price)
                )

            self.available_funds = round(self.available_funds - cost, 2)
            self._persist()
            logger.info(f"Bought {quantity} {quote.code} at {quote.current_price}, cost {cost}")
            return cost

    def sell(self, quote: Quote, quantity: int) -> SellRecord:
        with self._lock:
            existing = self.find_item(quote.code)
            if existing is None:
                raise TradeError("POSITION_NOT_FOUND", "未持有该股票")
            if not quote.has_data or quote.current_price <= 0:
                raise TradeError("NO_QUOTE_DATA", "暂无行情数据，无法交易")
            if quantity <= 0 or quantity > existing.quantity:
                raise TradeError("INVALID_QUANTITY", "卖出数量无效")

            revenue = round(quote.current_price * quantity, 2)
            if quantity == existing.quantity:
                self.items = [item for item in self.items if item.stock_code != quote.code]
            else:
                remaining = existing.model_copy(update={"quantity": existing.quantity - quantity})
                self.items = [remaining if item.stock_code == quote.code else item for item in self.items]

            record = SellRecord(
                stock_code=quote.code,
                stock_name=quote.name,
                quantity=quantity,
                price=quote.current_price,
                amount=revenue,
                time=self._now(),
            )
            self.sell_records.append(record)
            self.available_funds = round(self.available_funds + revenue, 2)
            self._persist()
            logger.info(f"Sold {quantity} {quote.code} at {quote.current_price}, revenue {revenue}")
            return record

    def check_unlock_limit(self, total_assets: float) -> bool:
        """Raise the unlocked limit to the tier for ``total_assets``; never lowers it."""
        with self._lock:
            new_limit = limit_for_assets(total_assets)
            if new_limit <= self.unlocked_limit:
                return False
            self.unlocked_limit = new_limit
            self.store.set(KEY_UNLOCKED_LIMIT, str(self.unlocked_limit))
            logger.info(f"Unlocked limit raised to {format_funds(new_limit)}")
            return True

    def snapshot(self, prices: dict[str, float], names: Callable[[str], str]) -> PortfolioSnapshot:
        with self._lock:
            positions: list[PortfolioPosition] = []
            for item in self.items:
                current_price = self._price_for(item, prices)
                market_value = current_price * item.quantity
                cost_basis = item.average_price * item.quantity
                pnl_amount = market_value - cost_basis
                positions.append(
                    PortfolioPosition(
                        stock_code=item.stock_code,
                        stock_name=names(item.stock_code),
                        quantity=item.quantity,
                        average_price=round(item.average_price, 4),
                        current_price=round(current_price, 4),
                        market_value=round(market_value, 2),
                        pnl_amount=round(pnl_amount, 2),
                        pnl_ratio=round(pnl_amount / cost_basis, 6) if cost_basis > 0 else 0.0,
                    )
                )
            positions.sort(key=lambda row: row.market_value, reverse=True)
            position_value = sum(row.market_value for row in positions)
            return PortfolioSnapshot(
                available_funds=round(self.available_funds, 2),
                initial_funds=round(self.initial_funds, 2),
                unlocked_limit=self.unlocked_limit,
                position_value=round(position_value, 2),
                total_assets=round(self.available_funds + position_value, 2),
                profit_rate=round(self.profit_rate(prices), 4),
                positions=positions,
            )

    def reset(self) -> None:
        with self._lock:
            self.available_funds = self._default_funds
            self.initial_funds = self._default_funds
            self.unlocked_limit = BASE_LIMIT
            self.items = []
            self.sell_records = []
            self._persist()
