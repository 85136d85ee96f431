"""
Xueqiu realtime quotes.

Xueqiu rejects API calls without the session cookies its home page hands out,
so the shared client is primed once before the first request.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..catalog import find_stock_name
from ..models import Period
from .base import DEFAULT_HEADERS, ParseError, QuoteFragment, QuoteProvider, parse_float, to_provider_code

logger = logging.getLogger(__name__)

XUEQIU_HOME = "https://xueqiu.com/"
XUEQIU_HEADERS = {**DEFAULT_HEADERS, "Referer": XUEQIU_HOME}
SESSION_COOKIE = "xq_a_token"


async def ensure_xueqiu_session(client: httpx.AsyncClient, timeout: float = 15.0) -> None:
    if client.cookies.get(SESSION_COOKIE):
        return
    logger.debug("Priming xueqiu session cookies")
    await client.get(XUEQIU_HOME, headers=XUEQIU_HEADERS, timeout=timeout)


def parse_xueqiu_quote(payload: Any, code: str) -> QuoteFragment | ParseError:
    if not isinstance(payload, dict):
        return ParseError("xueqiu payload is not an object")
    data = payload.get("data")
    quote = data.get("quote") if isinstance(data, dict) else None
    if not isinstance(quote, dict):
        return ParseError("xueqiu payload has no data.quote")

    current = parse_float(quote.get("current"))
    previous = parse_float(quote.get("last_close"))
    if current is None or previous is None:
        return ParseError("xueqiu quote has no current or last_close")

    name = str(quote.get("name") or "").strip() or find_stock_name(code)
    return QuoteFragment(name=name, current_price=current, previous_close=previous)


class XueqiuProvider(QuoteProvider):
    name = "xueqiu"

    async def request(self, client: httpx.AsyncClient, code: str, period: Period) -> httpx.Response:
        await ensure_xueqiu_session(client, timeout=self.config.timeout_sec)
        return await client.get(
            self.config.base_url,
            params={"symbol": to_provider_code(code, "xueqiu")},
            headers=XUEQIU_HEADERS,
            timeout=self.config.timeout_sec,
        )

    def parse(self, response: httpx.Response, code: str) -> QuoteFragment | ParseError:
        try:
            payload = response.json()
        except ValueError as exc:
            return ParseError(f"xueqiu payload is not json: {exc}")
        return parse_xueqiu_quote(payload, code)
