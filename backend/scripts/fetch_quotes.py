from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stocksim.catalog import find_industry
from stocksim.config import load_config
from stocksim.models import PERIODS
from stocksim.stock_service import StockService


def resolve_codes(codes_text: str, industry: str) -> list[str]:
    codes = [item.strip().upper() for item in codes_text.split(",") if item.strip()]
    if industry:
        found = find_industry(industry)
        if found is None:
            raise SystemExit(f"unknown industry: {industry}")
        codes.extend(stock.code for stock in found.stocks if stock.code not in codes)
    return codes


async def run(codes: list[str], period: str, config_path: str | None) -> int:
    service = StockService(load_config(config_path))
    missing = 0
    try:
        for code in codes:
            quote = await service.get_quote(code, period)
            if not quote.has_data:
                missing += 1
                print(f"[miss] {code} {quote.name} no data")
                continue
            print(
                f"[ok] {code} {quote.name} price={quote.current_price:.2f} "
                f"change={quote.change:+.2f} ({quote.change_percent:+.2f}%) "
                f"history={len(quote.historical_prices)} source={quote.source}"
            )
    finally:
        await service.aclose()

    for display_name, stats in service.get_provider_stats().items():
        print(
            f"[stats] {display_name} calls={stats.total_calls} "
            f"success={stats.success_rate_percent:.2f}% avg={stats.avg_response_time_ms}ms"
        )
    return 0 if missing == 0 else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Fetch quotes through the provider rotation and print them.")
    parser.add_argument("--codes", default="", help="Comma separated codes, e.g. 600036.SH,000001.SZ.")
    parser.add_argument("--industry", default="", help="Fetch every stock of an industry code, e.g. bank.")
    parser.add_argument("--period", choices=list(PERIODS), default="daily", help="History period.")
    parser.add_argument("--config", default="", help="Config file path.")
    parser.add_argument("--verbose", action="store_true", help="Log provider attempts.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    codes = resolve_codes(args.codes, args.industry)
    if not codes:
        parser.error("pass --codes or --industry")
    return asyncio.run(run(codes, args.period, args.config or None))


if __name__ == "__main__":
    raise SystemExit(main())
