"""
Portfolio Valuation

보유 종목 + 시세 + USD/KRW 환율 → 종목별 수익률과 KRW 기준 합계/비중.
순수 계산이며 예외를 던지지 않는다. 시세가 없는 종목은 평단가를 현재가로 본다.
"""
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace

from stockfolio.models import (
    Currency,
    HoldingReturn,
    MarketType,
    PortfolioItem,
    PortfolioSummary,
    Quote,
)

# 종목명에 포함되면 ETF로 보는 운용사 브랜드
ETF_NAME_KEYWORDS = (
    "KODEX",
    "TIGER",
    "PLUS",
    "KINDEX",
    "KOSEF",
    "ACE",
    "HANARO",
    "ARIRANG",
    "TIMEFOLIO",
    "KBSTAR",
    "SOL",
    "SMART",
    "TREX",
)


def to_krw(amount: float, currency: Currency, exchange_rate: float) -> float:
    return amount * exchange_rate if currency == Currency.USD else amount


def _find_quote(
    quotes_by_symbol: Mapping[str, Quote], symbol: str
) -> Quote | None:
    quote = quotes_by_symbol.get(symbol)
    if quote is None:
        quote = quotes_by_symbol.get(symbol.strip().upper())
    return quote


def calc_holding_return(
    item: PortfolioItem, quote: Quote | None, exchange_rate: float
) -> HoldingReturn:
    """단일 보유 종목 평가 (weight는 summarize에서 채움)"""
    current_price = quote.current_price if quote is not None else item.avg_price
    cost_basis = item.avg_price * item.quantity
    market_value = current_price * item.quantity
    return_amount = market_value - cost_basis
    return_percent = return_amount / cost_basis * 100 if cost_basis > 0 else 0.0

    return HoldingReturn(
        id=item.id,
        symbol=item.symbol,
        name=item.name,
        market=item.market,
        currency=item.currency,
        quantity=item.quantity,
        avg_price=item.avg_price,
        current_price=current_price,
        cost_basis=cost_basis,
        market_value=market_value,
        market_value_krw=to_krw(market_value, item.currency, exchange_rate),
        return_amount=return_amount,
        return_percent=return_percent,
    )


def summarize(
    holdings: Sequence[PortfolioItem],
    quotes_by_symbol: Mapping[str, Quote],
    exchange_rate: float,
    is_etf: Callable[[PortfolioItem], bool] | None = None,
) -> PortfolioSummary:
    """
    포트폴리오 합계 계산 (KRW 기준)

    Args:
        holdings: 보유 종목 (출력 순서 = 입력 순서)
        quotes_by_symbol: 심볼별 시세. 없으면 평단가로 평가
        exchange_rate: 1 USD 당 KRW
        is_etf: ETF 여부 판별 함수 (생략 시 모두 주식)
    """
    returns = [
        calc_holding_return(item, _find_quote(quotes_by_symbol, item.symbol), exchange_rate)
        for item in holdings
    ]

    total_cost_basis = sum(
        to_krw(h.cost_basis, h.currency, exchange_rate) for h in returns
    )
    total_market_value = sum(h.market_value_krw for h in returns)
    total_return_amount = total_market_value - total_cost_basis
    total_return_percent = (
        total_return_amount / total_cost_basis * 100 if total_cost_basis > 0 else 0.0
    )

    weighted: list[HoldingReturn] = []
    for item, h in zip(holdings, returns):
        weight = h.market_value_krw / total_market_value * 100 if total_market_value > 0 else 0.0
        weighted.append(
            replace(h, weight=weight, is_etf=bool(is_etf(item)) if is_etf else False)
        )

    return PortfolioSummary(
        total_cost_basis=total_cost_basis,
        total_market_value=total_market_value,
        total_return_amount=total_return_amount,
        total_return_percent=total_return_percent,
        holdings=weighted,
    )


def is_etf_holding(item: PortfolioItem, etf_symbols: Callable[[str], bool]) -> bool:
    """ETF 목록에 있거나 국내 종목명에 ETF 브랜드가 들어가면 ETF"""
    if etf_symbols(item.symbol):
        return True
    if item.market != MarketType.KRX:
        return False
    name = item.name.upper()
    return any(keyword in name for keyword in ETF_NAME_KEYWORDS)


def split_by_asset_type(
    summary: PortfolioSummary,
) -> tuple[list[HoldingReturn], list[HoldingReturn]]:
    """(주식, ETF) 순으로 보유 종목 분리. 각 목록은 원래 순서 유지"""
    stocks = [h for h in summary.holdings if not h.is_etf]
    etfs = [h for h in summary.holdings if h.is_etf]
    return stocks, etfs
