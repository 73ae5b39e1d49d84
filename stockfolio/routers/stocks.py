"""
Stocks Router

시세, 종목 검색, 차트, 환율 API 엔드포인트
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from stockfolio.core.exceptions import QuoteUnavailable, UpstreamUnavailable
from stockfolio.models import MarketType
from stockfolio.routers.dependencies import get_kis_credential, get_stock_service
from stockfolio.schemas.stock import (
    ExchangeRateResponse,
    HistoricalBar,
    HistoryResponse,
    QuoteResponse,
    QuotesResponse,
    SearchResponse,
    SearchResultResponse,
)
from stockfolio.services.chart_indicators import build_chart_frame, frame_to_records
from stockfolio.services.kis import KISCredential
from stockfolio.services.stock_history import bars_to_frame, resolve_interval
from stockfolio.services.stock_service import StockService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Stocks"])

MAX_QUOTE_SYMBOLS = 50


@router.get("/stocks/quote/{symbol}", response_model=QuoteResponse)
async def get_quote(
    symbol: str,
    market: Optional[MarketType] = None,
    credential: Optional[KISCredential] = Depends(get_kis_credential),
    service: StockService = Depends(get_stock_service),
):
    """단일 종목 시세

    KIS 자격증명 헤더가 있으면 국내 종목은 KIS로만 조회한다.
    """
    try:
        quote = await service.get_quote(symbol, market, credential)
    except QuoteUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return QuoteResponse.from_quote(quote)


@router.get("/stocks/quotes", response_model=QuotesResponse)
async def get_quotes(
    symbols: str = Query(..., description="쉼표로 구분한 심볼 목록"),
    credential: Optional[KISCredential] = Depends(get_kis_credential),
    service: StockService = Depends(get_stock_service),
):
    """여러 종목 시세 (실패한 종목은 errors에)"""
    requested = [s.strip() for s in symbols.split(",") if s.strip()]
    if not requested:
        raise HTTPException(status_code=422, detail="symbols is empty")
    if len(requested) > MAX_QUOTE_SYMBOLS:
        raise HTTPException(
            status_code=422, detail=f"at most {MAX_QUOTE_SYMBOLS} symbols per request"
        )

    quotes, errors = await service.get_quotes(requested, credential=credential)
    return QuotesResponse(
        quotes={s: QuoteResponse.from_quote(q) for s, q in quotes.items()},
        errors={s: str(e) for s, e in errors.items()},
    )


@router.get("/stocks/search", response_model=SearchResponse)
async def search_stocks(
    q: str = Query(..., description="종목명 또는 코드"),
    service: StockService = Depends(get_stock_service),
):
    try:
        results = await service.search_stocks(q)
    except UpstreamUnavailable as e:
        logger.warning("Search failed for %r: %s", q, e)
        raise HTTPException(status_code=503, detail=str(e)) from e
    return SearchResponse(
        query=q, results=[SearchResultResponse.from_result(r) for r in results]
    )


@router.get("/stocks/{symbol}/history", response_model=HistoryResponse)
async def get_history(
    symbol: str,
    range_: str = Query("1mo", alias="range"),
    interval: Optional[str] = None,
    market: Optional[MarketType] = None,
    indicators: bool = False,
    yearly: bool = False,
    service: StockService = Depends(get_stock_service),
):
    """차트 데이터

    indicators=true이면 유효 봉만 남기고 이동평균(ma5/20/60/120, vma20)을 붙인다.
    yearly=true이면 연봉으로 합친다.
    """
    try:
        bars = await service.get_stock_history(symbol, market, range_, interval)
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    chart = None
    if indicators or yearly:
        frame = build_chart_frame(bars_to_frame(bars), yearly=yearly, indicators=indicators)
        chart = frame_to_records(frame)

    return HistoryResponse(
        symbol=symbol.strip().upper(),
        range=range_,
        interval=resolve_interval(range_, interval),
        bars=[HistoricalBar.from_point(b) for b in bars],
        chart=chart,
    )


@router.get("/exchange-rate/usd-krw", response_model=ExchangeRateResponse)
async def get_usd_krw_rate(service: StockService = Depends(get_stock_service)):
    """USD/KRW 환율 (조회 실패 시 기본값, is_fallback=true)"""
    rate, is_fallback = await service.get_usd_krw_rate_or_default()
    return ExchangeRateResponse(rate=rate, is_fallback=is_fallback)
