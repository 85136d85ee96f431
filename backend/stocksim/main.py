from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .catalog import find_industry, is_known, list_industries
from .config import load_config
from .models import (
    ApiErrorPayload,
    Industry,
    Period,
    PortfolioResetResponse,
    PortfolioSnapshot,
    ProviderStats,
    Quote,
    SellRecordsResponse,
    TradeRequest,
    TradeResponse,
)
from .portfolio import PortfolioLedger, TradeError
from .stock_service import AllProvidersExhausted, StockService
from .trading import TradingDesk

logger = logging.getLogger(__name__)

config = load_config()
service = StockService(config)
ledger = PortfolioLedger(service.store, initial_funds=config.initial_funds)
desk = TradingDesk(service, ledger)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    logger.info("Shutting down quote service")
    await service.aclose()


def configure_cors(target: FastAPI, origins: list[str]) -> bool:
    """Allow browser clients from ``origins``; no CORS headers when empty."""
    if not origins:
        return False
    target.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return True


app = FastAPI(title="Stock simulator API", version="0.1.0", lifespan=lifespan)
configure_cors(app, config.cors_origins)


def error_response(
    status_code: int,
    code: str,
    message: str,
    *,
    degraded: bool | None = None,
    degraded_reason: str | None = None,
) -> JSONResponse:
    payload = ApiErrorPayload(
        code=code,
        message=message,
        degraded=degraded,
        degraded_reason=degraded_reason,
        trace_id=str(time.time_ns()),
    )
    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))


def normalize_code(code: str) -> str:
    return code.strip().upper()


@app.exception_handler(RequestValidationError)
def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    detail = exc.errors()[0].get("msg") if exc.errors() else "请求参数不合法"
    return error_response(422, "VALIDATION_ERROR", str(detail))


@app.exception_handler(TradeError)
def handle_trade_error(_: Request, exc: TradeError) -> JSONResponse:
    status_code = 404 if exc.code == "POSITION_NOT_FOUND" else 400
    return error_response(status_code, exc.code, exc.message)


@app.exception_handler(AllProvidersExhausted)
def handle_exhausted(_: Request, exc: AllProvidersExhausted) -> JSONResponse:
    return error_response(503, exc.code, exc.message, degraded=True, degraded_reason="ALL_PROVIDERS_FAILED")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/industries", response_model=list[Industry])
def get_industries(industry: str = Query(default="", description="industry code, e.g. bank")) -> list[Industry] | JSONResponse:
    if not industry:
        return list_industries()
    found = find_industry(industry)
    if found is None:
        return error_response(404, "INDUSTRY_NOT_FOUND", f"行业不存在: {industry}")
    return [found]


@app.get("/api/stocks/{code}/quote", response_model=Quote)
async def get_stock_quote(
    code: str = Path(min_length=4, max_length=16),
    period: Period = Query(default="daily"),
) -> Quote | JSONResponse:
    normalized = normalize_code(code)
    if not is_known(normalized):
        return error_response(404, "STOCK_NOT_FOUND", "未找到相关股票，请输入正确的股票代码（如：600036.SH）")
    return await service.require_quote(normalized, period)


@app.get("/api/providers/stats", response_model=dict[str, ProviderStats])
def get_provider_stats() -> dict[str, ProviderStats]:
    return service.get_provider_stats()


@app.get("/api/portfolio", response_model=PortfolioSnapshot)
async def get_portfolio() -> PortfolioSnapshot:
    return await desk.portfolio_snapshot()


@app.post("/api/trade/buy", response_model=TradeResponse)
async def post_buy(payload: TradeRequest) -> TradeResponse | JSONResponse:
    code = normalize_code(payload.code)
    if not is_known(code):
        return error_response(404, "STOCK_NOT_FOUND", f"未找到股票: {payload.code}")
    return await desk.buy(code, payload.quantity, payload.period)


@app.post("/api/trade/sell", response_model=TradeResponse)
async def post_sell(payload: TradeRequest) -> TradeResponse:
    return await desk.sell(normalize_code(payload.code), payload.quantity, payload.period)


@app.get("/api/trade/sell-records", response_model=SellRecordsResponse)
def get_sell_records() -> SellRecordsResponse:
    return desk.sell_records()


@app.post("/api/portfolio/reset", response_model=PortfolioResetResponse)
def post_portfolio_reset() -> PortfolioResetResponse:
    ledger.reset()
    return PortfolioResetResponse(
        success=True,
        available_funds=ledger.available_funds,
        unlocked_limit=ledger.unlocked_limit,
    )
