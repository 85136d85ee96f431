from __future__ import annotations

from .catalog import find_stock_name
from .models import Period, PortfolioSnapshot, SellRecordsResponse, TradeResponse
from .portfolio import PortfolioLedger, TradeError
from .stock_service import StockService


class TradingDesk:
    """Runs buy and sell intents against live quotes and the ledger."""

    def __init__(self, service: StockService, ledger: PortfolioLedger) -> None:
        self.service = service
        self.ledger = ledger

    async def _holding_prices(self) -> dict[str, float]:
        prices = self.service.latest_prices()
        for item in self.ledger.items:
            if item.stock_code in prices:
                continue
            quote = await self.service.get_quote(item.stock_code)
            if quote.has_data:
                prices[item.stock_code] = quote.current_price
        return prices

    def _check_unlock(self, prices: dict[str, float]) -> bool:
        return self.ledger.check_unlock_limit(self.ledger.total_assets(prices))

    async def buy(self, code: str, quantity: int, period: Period = "daily") -> TradeResponse:
        quote = await self.service.require_quote(code, period)
        prices = await self._holding_prices()
        prices[code] = quote.current_price
        cost = self.ledger.buy(quote, quantity, prices)
        raised = self._check_unlock(prices)
        return TradeResponse(
            side="buy",
            code=quote.code,
            name=quote.name,
            quantity=quantity,
            price=quote.current_price,
            amount=cost,
            available_funds=self.ledger.available_funds,
            unlocked_limit=self.ledger.unlocked_limit,
            limit_raised=raised,
        )

    async def sell(self, code: str, quantity: int, period: Period = "daily") -> TradeResponse:
        # Reject before spending provider budget on a quote.
        if self.ledger.find_item(code) is None:
            raise TradeError("POSITION_NOT_FOUND", "未持有该股票")
        quote = await self.service.require_quote(code, period)
        record = self.ledger.sell(quote, quantity)
        prices = await self._holding_prices()
        prices[code] = quote.current_price
        raised = self._check_unlock(prices)
        return TradeResponse(
            side="sell",
            code=quote.code,
            name=quote.name,
            quantity=quantity,
            price=record.price,
            amount=record.amount,
            available_funds=self.ledger.available_funds,
            unlocked_limit=self.ledger.unlocked_limit,
            limit_raised=raised,
        )

    async def portfolio_snapshot(self) -> PortfolioSnapshot:
        prices = await self._holding_prices()
        self._check_unlock(prices)
        return self.ledger.snapshot(prices, find_stock_name)

    def sell_records(self) -> SellRecordsResponse:
        items = sorted(self.ledger.sell_records, key=lambda row: row.time, reverse=True)
        return SellRecordsResponse(items=items, total=len(items))
