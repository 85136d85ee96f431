from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stocksim.catalog import INDUSTRIES, all_stocks, find_industry, find_stock_name, is_known


def test_every_industry_lists_twelve_rows() -> None:
    assert len(INDUSTRIES) == 12
    assert all(len(industry.stocks) == 12 for industry in INDUSTRIES)


def test_repeated_symbols_resolve_to_first_occurrence() -> None:
    assert find_stock_name("001979.SZ") == "招商蛇口"
    assert find_stock_name("600048.SH") == "保利发展"
    assert find_stock_name("000002.SZ") == "万科A"

    stocks = all_stocks()
    assert len(stocks) == 136
    assert len({stock.code for stock in stocks}) == 136
    assert next(stock for stock in stocks if stock.code == "000002.SZ").industry == "银行"


def test_lookup_of_legacy_holdings() -> None:
    for code in ("000002.SZ", "000682.SZ", "000876.SZ", "000968.SZ", "300059.SZ"):
        assert is_known(code)
    assert not is_known("601328.SH")
    assert find_stock_name("999999.SH") == "999999.SH"

    energy = find_industry("ENERGY")
    assert energy is not None
    assert energy.stocks[-1].name == "煤气化"
