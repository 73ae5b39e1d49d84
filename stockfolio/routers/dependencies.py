"""
Common router dependencies.
"""
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from stockfolio.services.kis import KISCredential
from stockfolio.services.stock_service import StockService


def get_stock_service(request: Request) -> StockService:
    """Return the StockService created in the app lifespan."""
    return request.app.state.stock_service


def get_kis_credential(
    x_kis_app_key: Optional[str] = Header(None),
    x_kis_app_secret: Optional[str] = Header(None),
) -> Optional[KISCredential]:
    """KIS 자격증명 헤더 (둘 다 있거나 둘 다 없어야 함)"""
    app_key = (x_kis_app_key or "").strip()
    app_secret = (x_kis_app_secret or "").strip()
    if not app_key and not app_secret:
        return None
    if not app_key or not app_secret:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-KIS-App-Key and X-KIS-App-Secret must be sent together",
        )
    return KISCredential(app_key=app_key, app_secret=app_secret)
