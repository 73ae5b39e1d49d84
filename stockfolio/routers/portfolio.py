"""
Portfolio Router

포트폴리오 평가 및 CSV 가져오기/내보내기 API 엔드포인트
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from stockfolio.core.timezone import now_kst
from stockfolio.routers.dependencies import get_kis_credential, get_stock_service
from stockfolio.schemas.portfolio import (
    CsvExportRequest,
    CsvImportRequest,
    CsvImportResponse,
    CsvRowError,
    PortfolioSummaryRequest,
    PortfolioSummaryResponse,
)
from stockfolio.services.kis import KISCredential
from stockfolio.services.portfolio_csv import export_portfolio_csv, parse_portfolio_csv
from stockfolio.services.stock_service import StockService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/portfolio", tags=["Portfolio"])


@router.post("/summary", response_model=PortfolioSummaryResponse)
async def summarize_portfolio(
    request: PortfolioSummaryRequest,
    credential: Optional[KISCredential] = Depends(get_kis_credential),
    service: StockService = Depends(get_stock_service),
):
    """포트폴리오 평가

    quotes에 없는 종목은 시세를 조회하고, 실패하면 평단가로 평가한 뒤
    symbols_in_error에 사유를 담는다.
    """
    holdings = [h.to_item() for h in request.holdings]
    quotes = {s: q.to_quote() for s, q in (request.quotes or {}).items()}

    summary, rate, symbols_in_error = await service.summarize_portfolio(
        holdings, quotes, request.exchange_rate, credential
    )
    if symbols_in_error:
        logger.info("Portfolio summary with quote errors: %s", sorted(symbols_in_error))
    return PortfolioSummaryResponse.from_summary(summary, rate, symbols_in_error)


@router.post("/csv/export")
async def export_csv(request: CsvExportRequest):
    filename = f"portfolio_{now_kst():%Y%m%d}.csv"
    return Response(
        content=export_portfolio_csv(request.holdings),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/csv/import", response_model=CsvImportResponse)
async def import_csv(request: CsvImportRequest):
    result = parse_portfolio_csv(request.content)
    return CsvImportResponse(
        valid=result.valid,
        errors=[
            CsvRowError(row=e.row, raw=e.raw, message=e.message) for e in result.errors
        ],
    )
