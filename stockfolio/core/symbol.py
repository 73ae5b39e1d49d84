"""
종목 심볼 판별·변환 유틸리티

시장 판별은 조회가 아닌 정규식 휴리스틱이다.
- `^`로 시작: 지수 심볼 → KRX 아님
- 순수 영문 1~5자: 미국 티커 → KRX 아님 (기본 NYSE, 거래소 코드로만 NASDAQ 보정)
- 그 외(숫자 포함, 영문+숫자 혼합, 6자 이상 등): KRX
짧은 비미국 티커나 특이한 지수 심볼은 잘못 분류될 수 있다.
호출자가 market을 명시하면 휴리스틱보다 항상 우선한다.
"""

import re

from stockfolio.models import MarketType

KRX_SUFFIXES = (".KS", ".KQ")  # 코스피, 코스닥

_US_TICKER_RE = re.compile(r"^[A-Za-z]{1,5}$")
_KRX_SUFFIX_RE = re.compile(r"\.(KS|KQ|KR)$")

_NASDAQ_CODES = frozenset({"NMS", "NGM", "NCM"})
_KRX_CODES = frozenset({"KSC", "KOE", "KOQ"})


def is_krx_symbol(symbol: str) -> bool:
    """KRX 종목 여부 (휴리스틱)

    예: 005930 -> True, AAPL -> False, ^KS11 -> False
    """
    s = symbol.strip()
    if s.startswith("^"):
        return False
    return not _US_TICKER_RE.match(s)


def detect_market(symbol: str, market: MarketType | None = None) -> MarketType:
    """심볼의 시장 결정. 명시된 market이 있으면 그대로 사용한다."""
    if market is not None:
        return market
    return MarketType.KRX if is_krx_symbol(symbol) else MarketType.NYSE


def map_exchange_code(code: str | None) -> MarketType:
    """업스트림 거래소 코드 → 시장 (모르는 코드는 NYSE)"""
    if code in _NASDAQ_CODES:
        return MarketType.NASDAQ
    if code in _KRX_CODES:
        return MarketType.KRX
    return MarketType.NYSE


def is_krx_exchange_code(code: str | None) -> bool:
    return code in _KRX_CODES


def strip_krx_suffix(symbol: str) -> str:
    """Yahoo 한국 종목 접미사 제거

    예: 005930.KS -> 005930
    """
    return _KRX_SUFFIX_RE.sub("", symbol)


def to_yahoo_symbol(symbol: str) -> str:
    """DB 심볼(.)을 Yahoo Finance 형식(-)으로 변환

    예: BRK.B -> BRK-B
    """
    return symbol.replace(".", "-")
