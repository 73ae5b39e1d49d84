"""
Market Data Models

시세·검색·차트·포트폴리오 계산에 쓰이는 도메인 타입
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime


class MarketType(str, enum.Enum):
    """시장 타입"""

    KRX = "KRX"  # 한국거래소 (코스피/코스닥)
    NYSE = "NYSE"
    NASDAQ = "NASDAQ"


class Currency(str, enum.Enum):
    """통화"""

    KRW = "KRW"
    USD = "USD"


class MarketStatus(str, enum.Enum):
    """장 운영 상태"""

    PRE_MARKET = "PRE_MARKET"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    AFTER_HOURS = "AFTER_HOURS"


class AssetType(str, enum.Enum):
    """자산 유형"""

    stock = "stock"
    etf = "etf"


class SourceKind(str, enum.Enum):
    """시세 업스트림 종류"""

    kis = "kis"  # 한국투자증권 Open API (토큰 인증)
    naver_mobile = "naver_mobile"  # 네이버 금융 모바일
    yahoo = "yahoo"  # Yahoo Finance chart


@dataclass(frozen=True)
class Quote:
    """단일 종목의 시점 시세.

    open/high/low/52주 값의 0은 '알 수 없음'을 뜻한다. current_price는 항상 양수.
    """

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

    @property
    def missing_ohlc(self) -> bool:
        return self.open == 0 or self.high == 0 or self.low == 0

    @property
    def missing_52_week(self) -> bool:
        return self.high_52_week == 0 or self.low_52_week == 0

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "market": self.market.value,
            "currency": self.currency.value,
            "current_price": self.current_price,
            "previous_close": self.previous_close,
            "change": self.change,
            "change_percent": self.change_percent,
            "volume": self.volume,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "high_52_week": self.high_52_week,
            "low_52_week": self.low_52_week,
            "market_status": self.market_status.value,
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class HistoricalDataPoint:
    """OHLCV 봉 하나"""

    date: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def is_valid(self) -> bool:
        return self.close > 0


@dataclass(frozen=True)
class SearchResult:
    """종목 검색 결과"""

    symbol: str
    name: str
    market: MarketType
    currency: Currency
    asset_type: AssetType | None = None


@dataclass(frozen=True)
class PortfolioItem:
    """보유 종목 입력 (저장소가 소유, 계산 엔진은 읽기만 함)"""

    id: str
    symbol: str
    name: str
    market: MarketType
    currency: Currency
    avg_price: float
    quantity: int


@dataclass(frozen=True)
class HoldingReturn:
    """보유 종목별 평가 결과"""

    id: str
    symbol: str
    name: str
    market: MarketType
    currency: Currency
    quantity: int
    avg_price: float
    current_price: float
    cost_basis: float
    market_value: float
    market_value_krw: float
    return_amount: float
    return_percent: float
    weight: float = 0.0
    is_etf: bool = False


@dataclass(frozen=True)
class PortfolioSummary:
    """포트폴리오 합계 (KRW 기준)"""

    total_cost_basis: float
    total_market_value: float
    total_return_amount: float
    total_return_percent: float
    holdings: list[HoldingReturn] = field(default_factory=list)
