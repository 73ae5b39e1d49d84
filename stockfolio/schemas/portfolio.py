"""
Portfolio Schemas

보유 종목 입력, 포트폴리오 평가, CSV 가져오기/내보내기 관련 Pydantic 스키마
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stockfolio.models import (
    Currency,
    HoldingReturn,
    MarketType,
    PortfolioItem,
    PortfolioSummary,
)
from stockfolio.schemas.stock import QuoteResponse


# =============================================================================
# Holding Input Schemas
# =============================================================================

class HoldingInput(BaseModel):
    """보유 종목 입력 (수동 등록 / CSV 행 공통)"""
    symbol: str = Field(
        ...,
        min_length=1,
        pattern=r"^[A-Za-z0-9^.]+$",
        description="종목 코드 (예: 005930, AAPL)",
    )
    name: str = Field(..., min_length=1, description="종목명")
    market: MarketType
    currency: Currency
    avg_price: float = Field(..., gt=0, alias="avgPrice", description="평균 매수가")
    quantity: int = Field(..., gt=0, description="보유 수량")

    @field_validator("symbol", "name", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "symbol": "005930",
                "name": "삼성전자",
                "market": "KRX",
                "currency": "KRW",
                "avgPrice": 70000,
                "quantity": 5,
            }
        },
    )


class PortfolioHolding(HoldingInput):
    """식별자가 있는 보유 종목"""
    id: str = Field(..., min_length=1)

    def to_item(self) -> PortfolioItem:
        return PortfolioItem(
            id=self.id,
            symbol=self.symbol,
            name=self.name,
            market=self.market,
            currency=self.currency,
            avg_price=self.avg_price,
            quantity=self.quantity,
        )


# =============================================================================
# Summary Schemas
# =============================================================================

class PortfolioSummaryRequest(BaseModel):
    """포트폴리오 평가 요청

    quotes/exchange_rate를 생략하면 서버에서 조회한다.
    """
    holdings: List[PortfolioHolding]
    quotes: Optional[Dict[str, QuoteResponse]] = None
    exchange_rate: Optional[float] = Field(None, gt=0, alias="exchangeRate")

    model_config = ConfigDict(populate_by_name=True)


class HoldingReturnResponse(BaseModel):
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
    weight: float
    is_etf: bool

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_holding(cls, holding: HoldingReturn) -> "HoldingReturnResponse":
        return cls.model_validate(holding)


class PortfolioSummaryResponse(BaseModel):
    total_cost_basis: float
    total_market_value: float
    total_return_amount: float
    total_return_percent: float
    exchange_rate: float
    holdings: List[HoldingReturnResponse]
    symbols_in_error: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_summary(
        cls,
        summary: PortfolioSummary,
        exchange_rate: float,
        symbols_in_error: Optional[Dict[str, str]] = None,
    ) -> "PortfolioSummaryResponse":
        return cls(
            total_cost_basis=summary.total_cost_basis,
            total_market_value=summary.total_market_value,
            total_return_amount=summary.total_return_amount,
            total_return_percent=summary.total_return_percent,
            exchange_rate=exchange_rate,
            holdings=[HoldingReturnResponse.from_holding(h) for h in summary.holdings],
            symbols_in_error=symbols_in_error or {},
        )


# =============================================================================
# CSV Schemas
# =============================================================================

class CsvExportRequest(BaseModel):
    holdings: List[HoldingInput]


class CsvImportRequest(BaseModel):
    content: str = Field(..., description="CSV 텍스트 (BOM/CRLF 허용)")


class CsvRowError(BaseModel):
    row: int = Field(..., description="1부터 시작하는 행 번호 (헤더 포함)")
    raw: str
    message: str


class CsvImportResponse(BaseModel):
    valid: List[HoldingInput]
    errors: List[CsvRowError]
