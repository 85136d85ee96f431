from __future__ import annotations

import json
from typing import Any

import httpx

TENCENT_QUOTE = 'v_sh600036="1~招商银行~600036~35.68~35.67~35.66~412345~200000~212345";'
SINA_QUOTE = 'var hq_str_sh600036="' + ",".join(["招商银行", "35.67", "35.66", "35.68"] + ["0"] * 28) + '";'
XUEQIU_QUOTE = {"data": {"quote": {"symbol": "SH600036", "name": "招商银行", "current": 35.68, "last_close": 35.66}}}
EASTMONEY_KLINES = {
    "data": {
        "code": "600036",
        "name": "招商银行",
        "klines": [
            "2024-01-02,35.00,35.50,35.80,34.90,100000",
            "2024-01-03,35.50,35.66,35.90,35.40,110000",
            "2024-01-04,35.66,35.68,35.95,35.50,120000",
        ],
    }
}
XUEQIU_KLINE = {
    "data": {
        "symbol": "SH600036",
        "item": [
            [1704153600000, 35.0, 35.5, 35.8, 34.9, 100000],
            [1704240000000, 35.5, 35.66, 35.9, 35.4, 110000],
            [1704326400000, 35.66, 35.68, 35.95, 35.5, 120000],
        ],
    }
}
TENCENT_KLINE = {
    "data": {
        "sh600036": {
            "qfqday": [
                ["2024-01-02", "35.00", "35.50", "35.80", "34.90", "100000"],
                ["2024-01-03", "35.50", "35.66", "35.90", "35.40", "110000"],
            ]
        }
    }
}


class FakeMarket:
    """
    Routes provider requests to canned payloads.

    ``failures`` maps a route name to ``"transport"`` (connection error),
    ``"status"`` (HTTP 500) or ``"garbage"`` (unparseable 200 body).
    ``payloads`` replaces the canned JSON body served for a route.
    """

    def __init__(self, failures: dict[str, str] | None = None, payloads: dict[str, Any] | None = None) -> None:
        self.failures = dict(failures or {})
        self.payloads = dict(payloads or {})
        self.requests: list[httpx.Request] = []

    @staticmethod
    def route(request: httpx.Request) -> str:
        host = request.url.host
        path = request.url.path
        if host == "qt.gtimg.cn":
            return "tencent"
        if host == "web.ifzq.gtimg.cn":
            return "tencent_kline"
        if host == "push2his.eastmoney.com":
            return "eastmoney"
        if host == "hq.sinajs.cn":
            return "sina"
        if host == "xueqiu.com":
            return "xueqiu_home"
        if host == "stock.xueqiu.com" and path.endswith("/quote.json"):
            return "xueqiu"
        if host == "stock.xueqiu.com" and path.endswith("/kline.json"):
            return "xueqiu_kline"
        return "unknown"

    def calls(self, route: str) -> int:
        return sum(1 for request in self.requests if self.route(request) == route)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.route(request)
        failure = self.failures.get(route)
        if failure == "transport":
            raise httpx.ConnectError("connection refused", request=request)
        if failure == "status":
            return httpx.Response(500, text="server error")
        if failure == "garbage":
            return httpx.Response(200, content=b"<html>blocked</html>")
        if route in self.payloads:
            return httpx.Response(200, json=self.payloads[route])

        if route == "tencent":
            return httpx.Response(200, content=TENCENT_QUOTE.encode("gbk"))
        if route == "sina":
            return httpx.Response(200, content=SINA_QUOTE.encode("gbk"))
        if route == "eastmoney":
            return httpx.Response(200, content=json.dumps(EASTMONEY_KLINES).encode("utf-8"))
        if route == "xueqiu_home":
            return httpx.Response(200, text="ok", headers={"set-cookie": "xq_a_token=token123; Path=/"})
        if route == "xueqiu":
            return httpx.Response(200, json=XUEQIU_QUOTE)
        if route == "xueqiu_kline":
            return httpx.Response(200, json=XUEQIU_KLINE)
        if route == "tencent_kline":
            return httpx.Response(200, json=TENCENT_KLINE)
        return httpx.Response(404, text="not found")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
