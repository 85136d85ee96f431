"""
Sina finance realtime quotes (hq.sinajs.cn).
"""

from __future__ import annotations

import httpx

from ..catalog import find_stock_name
from ..models import Period
from .base import DEFAULT_HEADERS, ParseError, QuoteFragment, QuoteProvider, decode_gbk, parse_float, to_provider_code

SINA_REFERER = "https://finance.sina.com.cn/"


def parse_sina_quote(text: str, code: str) -> QuoteFragment | ParseError:
    # var hq_str_sh600036="招商银行,35.67,35.66,35.68,...";
    parts = text.split('"')
    if len(parts) < 2:
        return ParseError("sina payload has no quoted section")
    fields = parts[1].split(",")
    if len(fields) < 30:
        return ParseError(f"sina payload has {len(fields)} fields, expected at least 30")

    previous = parse_float(fields[2])
    current = parse_float(fields[3])
    if current is None or previous is None:
        return ParseError("sina payload has non-numeric prices")

    name = fields[0].strip() or find_stock_name(code)
    return QuoteFragment(name=name, current_price=current, previous_close=previous)


class SinaProvider(QuoteProvider):
    name = "sina"

    async def request(self, client: httpx.AsyncClient, code: str, period: Period) -> httpx.Response:
        symbol = to_provider_code(code, "sina")
        headers = {**DEFAULT_HEADERS, "Referer": SINA_REFERER}
        return await client.get(
            f"{self.config.base_url}{symbol}",
            headers=headers,
            timeout=self.config.timeout_sec,
        )

    def parse(self, response: httpx.Response, code: str) -> QuoteFragment | ParseError:
        return parse_sina_quote(decode_gbk(response), code)
