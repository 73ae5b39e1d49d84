"""
Stock Schemas

시세·검색·차트 API 응답 스키마
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from stockfolio.models import (
    AssetType,
    Currency,
    HistoricalDataPoint,
    MarketStatus,
    MarketType,
    Quote,
    SearchResult,
)


class QuoteResponse(BaseModel):
    """정규화된 시세"""
    symbol: str
    name: str
    market: MarketType
    currency: Currency
    current_price: float
    previous_close: float
    change: float
    change_percent: float
    volume: float
    open: float
    high: float
    low: float
    high_52_week: float
    low_52_week: float
    market_status: MarketStatus
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_quote(cls, quote: Quote) -> "QuoteResponse":
        return cls.model_validate(quote)

    def to_quote(self) -> Quote:
        return Quote(**self.model_dump())


class QuotesResponse(BaseModel):
    quotes: Dict[str, QuoteResponse]
    errors: Dict[str, str]


class SearchResultResponse(BaseModel):
    symbol: str
    name: str
    market: MarketType
    currency: Currency
    asset_type: Optional[AssetType] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultResponse":
        return cls.model_validate(result)


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResultResponse]


class HistoricalBar(BaseModel):
    date: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_point(cls, point: HistoricalDataPoint) -> "HistoricalBar":
        return cls.model_validate(point)


class HistoryResponse(BaseModel):
    symbol: str
    range: str
    interval: str
    bars: List[HistoricalBar]
    # indicators=true일 때만: 필터링된 봉 + ma5/ma20/ma60/ma120/vma20
    chart: Optional[List[Dict[str, Optional[float | str]]]] = None


class ExchangeRateResponse(BaseModel):
    base: str = "USD"
    quote: str = "KRW"
    rate: float
    is_fallback: bool = False
