"""
East Money kline quotes.

The quote is derived from the kline series itself: the last close is the
current price and the close before it is the previous close. The same series
doubles as chart history, so no separate history fetch is needed.
"""

from __future__ import annotations

import httpx

from ..catalog import find_stock_name
from ..core.history import eastmoney_kline_params, parse_eastmoney_klines, period_window
from ..models import Period
from .base import DEFAULT_HEADERS, ParseError, QuoteFragment, QuoteProvider


def parse_eastmoney_quote(payload: object, code: str) -> QuoteFragment | ParseError:
    parsed = parse_eastmoney_klines(payload)
    if isinstance(parsed, ParseError):
        return parsed
    name, history = parsed
    if not history.prices:
        return ParseError("eastmoney payload has no usable klines")

    current = history.prices[-1]
    previous = history.prices[-2] if len(history.prices) > 1 else current
    return QuoteFragment(
        name=name or find_stock_name(code),
        current_price=current,
        previous_close=previous,
        prices=list(history.prices),
        dates=list(history.dates),
    )


class EastMoneyProvider(QuoteProvider):
    name = "eastmoney"

    async def request(self, client: httpx.AsyncClient, code: str, period: Period) -> httpx.Response:
        return await client.get(
            self.config.base_url,
            params=eastmoney_kline_params(code, period_window(period)),
            headers=DEFAULT_HEADERS,
            timeout=self.config.timeout_sec,
        )

    def parse(self, response: httpx.Response, code: str) -> QuoteFragment | ParseError:
        try:
            payload = response.json()
        except ValueError as exc:
            return ParseError(f"eastmoney payload is not json: {exc}")
        return parse_eastmoney_quote(payload, code)
