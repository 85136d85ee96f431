"""
Tencent finance realtime quotes (qt.gtimg.cn).
"""

from __future__ import annotations

import httpx

from ..catalog import find_stock_name
from ..models import Period
from .base import DEFAULT_HEADERS, ParseError, QuoteFragment, QuoteProvider, decode_gbk, parse_float, to_provider_code


def parse_tencent_quote(text: str, code: str) -> QuoteFragment | ParseError:
    """
    Parse a ``v_sh600036="1~招商银行~600036~35.68~35.67~35.66~..."`` body.

    Field 1 is the name, field 3 the current price and field 5 the previous
    close. A blank or single character name is replaced by the catalog name.
    """
    parts = text.split('"')
    if len(parts) < 2:
        return ParseError("tencent payload has no quoted section")
    fields = parts[1].split("~")
    if len(fields) < 6:
        return ParseError(f"tencent payload has {len(fields)} fields, expected at least 6")

    current = parse_float(fields[3])
    previous = parse_float(fields[5])
    if current is None or previous is None:
        return ParseError("tencent payload has non-numeric prices")

    name = fields[1].strip()
    if len(name) < 2:
        name = find_stock_name(code)
    return QuoteFragment(name=name, current_price=current, previous_close=previous)


class TencentProvider(QuoteProvider):
    name = "tencent"

    async def request(self, client: httpx.AsyncClient, code: str, period: Period) -> httpx.Response:
        symbol = to_provider_code(code, "tencent")
        return await client.get(
            f"{self.config.base_url}{symbol}",
            headers=DEFAULT_HEADERS,
            timeout=self.config.timeout_sec,
        )

    def parse(self, response: httpx.Response, code: str) -> QuoteFragment | ParseError:
        return parse_tencent_quote(decode_gbk(response), code)
