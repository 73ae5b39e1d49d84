"""Per-source quote payload schemas and their mapping to ``Quote``.

Each upstream has its own pydantic schema. Numeric fields accept numbers,
comma-grouped strings ("4,180") or null; anything unparseable is treated as
absent. Absent values end up as 0 in the quote, except ``current_price``,
which must be positive or the payload is rejected with ``InvalidQuoteData``.

When a source reports change / change percent explicitly those values are
kept; otherwise they are derived from current price and previous close.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from stockfolio.core.exceptions import InvalidQuoteData
from stockfolio.core.symbol import map_exchange_code
from stockfolio.core.timezone import get_market_status, now_utc
from stockfolio.models import Currency, MarketType, Quote, SourceKind


def parse_number(value: Any) -> float | None:
    """숫자 파싱 (실패 시 None)

    - 4180, 4180.5 → float
    - "4,180", " -58 " → float
    - "", "N/A", None, NaN → None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.replace(",", "").replace("%", "").strip()
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


Number = Annotated[float | None, BeforeValidator(parse_number)]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class NaverCompareCode(_Payload):
    code: str | None = None
    name: str | None = None


class NaverBasicPayload(_Payload):
    """m.stock.naver.com/api/stock/{code}/basic"""

    stock_code: str | None = Field(None, alias="stockCode")
    stock_name: str | None = Field(None, alias="stockName")
    close_price: Number = Field(None, alias="closePrice")
    compare_to_previous_close_price: Number = Field(
        None, alias="compareToPreviousClosePrice"
    )
    compare_to_previous_price: NaverCompareCode | None = Field(
        None, alias="compareToPreviousPrice"
    )
    fluctuations_ratio: Number = Field(None, alias="fluctuationsRatio")
    previous_close_price: Number = Field(None, alias="previousClosePrice")
    open_price: Number = Field(None, alias="openPrice")
    high_price: Number = Field(None, alias="highPrice")
    low_price: Number = Field(None, alias="lowPrice")
    accumulated_trading_volume: Number = Field(None, alias="accumulatedTradingVolume")

    @property
    def is_falling(self) -> bool:
        # 5: 하락, 4: 하한가
        compare = self.compare_to_previous_price
        return compare is not None and (
            compare.code in {"4", "5"} or compare.name in {"FALLING", "LOWER_LIMIT"}
        )


class KISPricePayload(_Payload):
    """KIS inquire-price output (FHKST01010100)"""

    hts_kor_isnm: str | None = None
    stck_prpr: Number = None  # 현재가
    stck_prdy_clpr: Number = None  # 전일 종가
    prdy_vrss: Number = None  # 전일 대비
    prdy_ctrt: Number = None  # 전일 대비율
    acml_vol: Number = None
    stck_oprc: Number = None
    stck_hgpr: Number = None
    stck_lwpr: Number = None
    w52_hgpr: Number = None
    w52_lwpr: Number = None


class YahooChartMeta(_Payload):
    """chart.result[0].meta"""

    symbol: str | None = None
    currency: str | None = None
    exchange_name: str | None = Field(None, alias="exchangeName")
    short_name: str | None = Field(None, alias="shortName")
    long_name: str | None = Field(None, alias="longName")
    regular_market_price: Number = Field(None, alias="regularMarketPrice")
    chart_previous_close: Number = Field(None, alias="chartPreviousClose")
    regular_market_previous_close: Number = Field(
        None, alias="regularMarketPreviousClose"
    )
    previous_close: Number = Field(None, alias="previousClose")
    regular_market_open: Number = Field(None, alias="regularMarketOpen")
    regular_market_day_high: Number = Field(None, alias="regularMarketDayHigh")
    regular_market_day_low: Number = Field(None, alias="regularMarketDayLow")
    regular_market_volume: Number = Field(None, alias="regularMarketVolume")
    fifty_two_week_high: Number = Field(None, alias="fiftyTwoWeekHigh")
    fifty_two_week_low: Number = Field(None, alias="fiftyTwoWeekLow")
    regular_market_change: Number = Field(None, alias="regularMarketChange")
    regular_market_change_percent: Number = Field(
        None, alias="regularMarketChangePercent"
    )


def _or_zero(value: float | None) -> float:
    return value if value is not None else 0.0


def _first_present(*values: float | None) -> float | None:
    for value in values:
        if value is not None:
            return value
    return None


def derive_change(
    current_price: float,
    previous_close: float,
    explicit_change: float | None = None,
    explicit_percent: float | None = None,
) -> tuple[float, float]:
    """등락/등락률 결정. 업스트림이 준 값이 있으면 그대로 쓴다."""
    change = (
        explicit_change
        if explicit_change is not None
        else current_price - previous_close
    )
    if explicit_percent is not None:
        change_percent = explicit_percent
    elif previous_close > 0:
        change_percent = change / previous_close * 100
    else:
        change_percent = 0.0
    return change, change_percent


def resolve_display_name(
    localized: str | None, *generic: str | None, symbol: str
) -> str:
    """표시명 우선순위: 현지화 이름 > 업스트림 일반 이름 > 심볼"""
    for candidate in (localized, *generic):
        if candidate and candidate.strip():
            return candidate.strip()
    return symbol


def _require_price(source: SourceKind, symbol: str, price: float | None) -> float:
    if price is None or price <= 0:
        raise InvalidQuoteData(source.value, symbol, "no positive current price")
    return price


def _validate(model: type[_Payload], source: SourceKind, symbol: str, raw: Any):
    if not isinstance(raw, dict):
        raise InvalidQuoteData(source.value, symbol, "payload is not an object")
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise InvalidQuoteData(source.value, symbol, str(exc)) from exc


def normalize_naver_basic(
    symbol: str,
    raw: Any,
    *,
    localized_name: str | None = None,
    now: datetime | None = None,
) -> Quote:
    payload: NaverBasicPayload = _validate(
        NaverBasicPayload, SourceKind.naver_mobile, symbol, raw
    )
    current_price = _require_price(
        SourceKind.naver_mobile, symbol, payload.close_price
    )

    change = payload.compare_to_previous_close_price
    percent = payload.fluctuations_ratio
    if payload.is_falling:
        change = -abs(change) if change is not None else None
        percent = -abs(percent) if percent is not None else None

    # 전일 종가가 없으면 현재가 - 등락으로 역산
    previous_close = payload.previous_close_price
    if previous_close is None or previous_close <= 0:
        previous_close = current_price - change if change else current_price

    change, change_percent = derive_change(
        current_price, previous_close, change, percent
    )
    resolved_at = now or now_utc()
    return Quote(
        symbol=symbol,
        name=resolve_display_name(localized_name, payload.stock_name, symbol=symbol),
        market=MarketType.KRX,
        currency=Currency.KRW,
        current_price=current_price,
        previous_close=previous_close,
        change=change,
        change_percent=change_percent,
        volume=_or_zero(payload.accumulated_trading_volume),
        open=_or_zero(payload.open_price),
        high=_or_zero(payload.high_price),
        low=_or_zero(payload.low_price),
        # 모바일 API는 52주 고저를 주지 않는다
        high_52_week=0.0,
        low_52_week=0.0,
        market_status=get_market_status(MarketType.KRX, resolved_at),
        updated_at=resolved_at,
    )


def normalize_kis_price(
    symbol: str,
    raw: Any,
    *,
    localized_name: str | None = None,
    now: datetime | None = None,
) -> Quote:
    payload: KISPricePayload = _validate(KISPricePayload, SourceKind.kis, symbol, raw)
    current_price = _require_price(SourceKind.kis, symbol, payload.stck_prpr)

    previous_close = payload.stck_prdy_clpr
    if previous_close is None or previous_close <= 0:
        previous_close = (
            current_price - payload.prdy_vrss if payload.prdy_vrss else current_price
        )
    change, change_percent = derive_change(
        current_price, previous_close, payload.prdy_vrss, payload.prdy_ctrt
    )
    resolved_at = now or now_utc()
    return Quote(
        symbol=symbol,
        # KIS 한글명이 현지화 이름이므로 로컬 DB보다 우선
        name=resolve_display_name(payload.hts_kor_isnm, localized_name, symbol=symbol),
        market=MarketType.KRX,
        currency=Currency.KRW,
        current_price=current_price,
        previous_close=previous_close,
        change=change,
        change_percent=change_percent,
        volume=_or_zero(payload.acml_vol),
        open=_or_zero(payload.stck_oprc),
        high=_or_zero(payload.stck_hgpr),
        low=_or_zero(payload.stck_lwpr),
        high_52_week=_or_zero(payload.w52_hgpr),
        low_52_week=_or_zero(payload.w52_lwpr),
        market_status=get_market_status(MarketType.KRX, resolved_at),
        updated_at=resolved_at,
    )


def normalize_yahoo_chart(
    symbol: str,
    raw: Any,
    *,
    krx: bool = False,
    localized_name: str | None = None,
    now: datetime | None = None,
) -> Quote:
    """chart result(meta 포함) → Quote

    krx=True이면 접미사 없는 국내 심볼/KRW로 고정하고, 아니면 거래소 코드로 시장을 정한다.
    """
    if not isinstance(raw, dict):
        raise InvalidQuoteData(SourceKind.yahoo.value, symbol, "payload is not an object")
    meta: YahooChartMeta = _validate(
        YahooChartMeta, SourceKind.yahoo, symbol, raw.get("meta") or {}
    )
    current_price = _require_price(SourceKind.yahoo, symbol, meta.regular_market_price)

    # chart API는 previousClose 대신 chartPreviousClose를 준다
    previous_close = _first_present(
        meta.chart_previous_close,
        meta.regular_market_previous_close,
        meta.previous_close,
    )
    if previous_close is None:
        previous_close = current_price
    change, change_percent = derive_change(
        current_price,
        previous_close,
        meta.regular_market_change,
        meta.regular_market_change_percent,
    )

    if krx:
        market = MarketType.KRX
        currency = Currency.KRW
    else:
        market = map_exchange_code(meta.exchange_name)
        currency = Currency.KRW if meta.currency == "KRW" else Currency.USD

    resolved_at = now or now_utc()
    return Quote(
        symbol=symbol,
        name=resolve_display_name(
            localized_name, meta.short_name, meta.long_name, symbol=symbol
        ),
        market=market,
        currency=currency,
        current_price=current_price,
        previous_close=previous_close,
        change=change,
        change_percent=change_percent,
        volume=_or_zero(meta.regular_market_volume),
        open=_or_zero(meta.regular_market_open),
        high=_or_zero(meta.regular_market_day_high),
        low=_or_zero(meta.regular_market_day_low),
        high_52_week=_or_zero(meta.fifty_two_week_high),
        low_52_week=_or_zero(meta.fifty_two_week_low),
        market_status=get_market_status(market, resolved_at),
        updated_at=resolved_at,
    )


_NORMALIZERS = {
    SourceKind.naver_mobile: normalize_naver_basic,
    SourceKind.kis: normalize_kis_price,
    SourceKind.yahoo: normalize_yahoo_chart,
}


def normalize(source_kind: SourceKind, symbol: str, raw: Any, **options: Any) -> Quote:
    """source_kind에 맞는 매핑 함수로 raw 응답을 Quote로 변환"""
    return _NORMALIZERS[source_kind](symbol, raw, **options)
