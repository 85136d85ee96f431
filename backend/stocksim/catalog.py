"""
Static stock catalog grouped by industry.

The catalog is hand maintained and read-only for the process lifetime. Some
symbols repeat, across industries and within one (``001979.SZ`` is listed as
both 招商蛇口 and 招商积余). Lookups resolve to the first occurrence.
"""

from __future__ import annotations

from .models import Industry, StockCatalogEntry


def _industry(name: str, code: str, rows: list[tuple[str, str]]) -> Industry:
    return Industry(
        name=name,
        code=code,
        stocks=tuple(StockCatalogEntry(code=symbol, name=title, industry=name) for symbol, title in rows),
    )


INDUSTRIES: tuple[Industry, ...] = (
    _industry(
        "银行",
        "bank",
        [
            ("600036.SH", "招商银行"),
            ("000001.SZ", "平安银行"),
            ("601939.SH", "建设银行"),
            ("601818.SH", "光大银行"),
            ("601288.SH", "农业银行"),
            ("601398.SH", "工商银行"),
            ("601988.SH", "中国银行"),
            ("600000.SH", "浦发银行"),
            ("601166.SH", "兴业银行"),
            ("000002.SZ", "万科A"),
            ("600015.SH", "华夏银行"),
            ("600016.SH", "民生银行"),
        ],
    ),
    _industry(
        "医药",
        "medicine",
        [
            ("600276.SH", "恒瑞医药"),
            ("300760.SZ", "迈瑞医疗"),
            ("600518.SH", "康美药业"),
            ("002007.SZ", "华兰生物"),
            ("300122.SZ", "智飞生物"),
            ("000661.SZ", "长春高新"),
            ("002821.SZ", "凯莱英"),
            ("300015.SZ", "爱尔眼科"),
            ("600196.SH", "复星医药"),
            ("002607.SZ", "中公教育"),
            ("300347.SZ", "泰格医药"),
            ("002838.SZ", "道恩股份"),
        ],
    ),
    _industry(
        "汽车",
        "auto",
        [
            ("601633.SH", "长城汽车"),
            ("002594.SZ", "比亚迪"),
            ("600104.SH", "上汽集团"),
            ("000625.SZ", "长安汽车"),
            ("601766.SH", "中国中车"),
            ("601238.SH", "广汽集团"),
            ("000338.SZ", "潍柴动力"),
            ("601628.SH", "中国人寿"),
            ("600660.SH", "福耀玻璃"),
            ("002460.SZ", "赣锋锂业"),
            ("300014.SZ", "亿纬锂能"),
            ("002812.SZ", "恩捷股份"),
        ],
    ),
    _industry(
        "航天",
        "aerospace",
        [
            ("600879.SH", "航天电子"),
            ("600118.SH", "中国卫星"),
            ("000901.SZ", "航天科技"),
            ("600343.SH", "航天动力"),
            ("601989.SH", "中国重工"),
            ("600501.SH", "航天晨光"),
            ("600151.SH", "航天机电"),
            ("600562.SH", "国睿科技"),
            ("002025.SZ", "航天电器"),
            ("600435.SH", "北方导航"),
            ("600855.SH", "航天长峰"),
            ("000733.SZ", "振华科技"),
        ],
    ),
    _industry(
        "短视频平台",
        "video",
        [
            ("000682.SZ", "东方财富"),
            ("600637.SH", "百视通"),
            ("300431.SZ", "暴风集团"),
            ("601929.SH", "吉视传媒"),
            ("002238.SZ", "天威视讯"),
            ("300058.SZ", "蓝色光标"),
            ("002624.SZ", "完美世界"),
            ("300413.SZ", "芒果超媒"),
            ("600136.SH", "当代文体"),
            ("002555.SZ", "三七互娱"),
            ("300315.SZ", "掌趣科技"),
            ("002699.SZ", "美盛文化"),
        ],
    ),
    _industry(
        "购物软件",
        "shopping",
        [
            ("601888.SH", "中国中免"),
            ("002024.SZ", "苏宁易购"),
            ("600865.SH", "百大集团"),
            ("000759.SZ", "中百集团"),
            ("600859.SH", "王府井"),
            ("600694.SH", "大商股份"),
            ("600827.SH", "百联股份"),
            ("000564.SZ", "供销大集"),
            ("600785.SH", "新华百货"),
            ("002416.SZ", "爱施德"),
            ("601010.SH", "文峰股份"),
            ("600729.SH", "重庆百货"),
        ],
    ),
    _industry(
        "房地产",
        "realestate",
        [
            ("000002.SZ", "万科A"),
            ("600048.SH", "保利发展"),
            ("001979.SZ", "招商蛇口"),
            ("000069.SZ", "华侨城A"),
            ("600383.SH", "金地集团"),
            ("601155.SH", "新城控股"),
            ("000656.SZ", "金科股份"),
            ("600340.SH", "华夏幸福"),
            ("001979.SZ", "招商积余"),
            ("600606.SH", "绿地控股"),
            ("000001.SZ", "平安银行"),
            ("600048.SH", "保利地产"),
        ],
    ),
    _industry(
        "白酒",
        "liquor",
        [
            ("600519.SH", "贵州茅台"),
            ("000858.SZ", "五粮液"),
            ("002304.SZ", "洋河股份"),
            ("600809.SH", "山西汾酒"),
            ("000568.SZ", "泸州老窖"),
            ("603589.SH", "口子窖"),
            ("600559.SH", "老白干酒"),
            ("000596.SZ", "古井贡酒"),
            ("603198.SH", "迎驾贡酒"),
            ("600779.SH", "水井坊"),
            ("603369.SH", "今世缘"),
            ("000799.SZ", "酒鬼酒"),
        ],
    ),
    _industry(
        "科技",
        "technology",
        [
            ("000063.SZ", "中兴通讯"),
            ("002415.SZ", "海康威视"),
            ("300750.SZ", "宁德时代"),
            ("002475.SZ", "立讯精密"),
            ("600030.SH", "中信证券"),
            ("300059.SZ", "东方财富"),
            ("002594.SZ", "比亚迪"),
            ("601012.SH", "隆基绿能"),
            ("300274.SZ", "阳光电源"),
            ("002129.SZ", "中环股份"),
            ("600745.SH", "闻泰科技"),
            ("603160.SH", "汇顶科技"),
        ],
    ),
    _industry(
        "能源",
        "energy",
        [
            ("601857.SH", "中国石油"),
            ("600028.SH", "中国石化"),
            ("601088.SH", "中国神华"),
            ("600900.SH", "长江电力"),
            ("601899.SH", "紫金矿业"),
            ("000876.SZ", "新希望"),
            ("600019.SH", "宝钢股份"),
            ("000708.SZ", "中信特钢"),
            ("601898.SH", "中煤能源"),
            ("600188.SH", "兖矿能源"),
            ("600348.SH", "阳泉煤业"),
            ("000968.SZ", "煤气化"),
        ],
    ),
    _industry(
        "食品饮料",
        "food",
        [
            ("000895.SZ", "双汇发展"),
            ("600887.SH", "伊利股份"),
            ("002714.SZ", "牧原股份"),
            ("600298.SH", "安琪酵母"),
            ("000596.SZ", "古井贡酒"),
            ("603288.SH", "海天味业"),
            ("002557.SZ", "洽洽食品"),
            ("603466.SH", "风语筑"),
            ("600073.SH", "上海梅林"),
            ("000848.SZ", "承德露露"),
            ("002557.SZ", "洽洽食品"),
            ("600519.SH", "贵州茅台"),
        ],
    ),
    _industry(
        "化工",
        "chemical",
        [
            ("600309.SH", "万华化学"),
            ("002493.SZ", "荣盛石化"),
            ("600346.SH", "恒力石化"),
            ("000301.SZ", "东方盛虹"),
            ("600160.SH", "巨化股份"),
            ("002648.SZ", "卫星化学"),
            ("600426.SH", "华鲁恒升"),
            ("000830.SZ", "鲁西化工"),
            ("600352.SH", "浙江龙盛"),
            ("002326.SZ", "永太科技"),
            ("603260.SH", "合盛硅业"),
            ("600143.SH", "金发科技"),
        ],
    ),
)


def list_industries() -> list[Industry]:
    return list(INDUSTRIES)


def all_stocks() -> list[StockCatalogEntry]:
    """Every catalog entry once, keeping the first industry a code appears in."""
    seen: set[str] = set()
    rows: list[StockCatalogEntry] = []
    for industry in INDUSTRIES:
        for stock in industry.stocks:
            if stock.code in seen:
                continue
            seen.add(stock.code)
            rows.append(stock)
    return rows


def find_industry(code: str) -> Industry | None:
    key = code.strip().lower()
    for industry in INDUSTRIES:
        if industry.code == key:
            return industry
    return None


def find_stock_name(code: str) -> str:
    for industry in INDUSTRIES:
        for stock in industry.stocks:
            if stock.code == code:
                return stock.name
    return code


def is_known(code: str) -> bool:
    return any(stock.code == code for industry in INDUSTRIES for stock in industry.stocks)
