import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from stockfolio import __version__
from stockfolio.core.cache import RedisTimedCache
from stockfolio.core.config import settings
from stockfolio.core.logging_config import setup_logging
from stockfolio.monitoring.sentry import capture_exception, init_sentry
from stockfolio.routers import health, portfolio, stocks
from stockfolio.services.stock_service import StockService

logger = logging.getLogger(__name__)


def create_app(stock_service: StockService | None = None) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging()
        init_sentry(service_name="stockfolio-api")

        service = stock_service or StockService()
        app.state.stock_service = service
        logger.info("stockfolio %s started (%s)", __version__, settings.ENVIRONMENT)

        try:
            yield
        finally:
            if isinstance(service.cache, RedisTimedCache):
                await service.cache.close()
            logger.info("stockfolio shutdown complete")

    app = FastAPI(
        title="Stockfolio",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.DOCS_ENABLED else None,
        redoc_url="/redoc" if settings.DOCS_ENABLED else None,
    )

    # Add global exception handler for detailed error logging
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Log all unhandled exceptions with full traceback"""
        logger.error(
            "Unhandled exception on %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=True,
            extra={
                "method": request.method,
                "url": str(request.url),
                "client": request.client.host if request.client else None,
            },
        )
        capture_exception(exc, method=request.method, path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc)},
        )

    app.include_router(health.router)
    app.include_router(stocks.router)
    app.include_router(portfolio.router)

    return app


app = create_app()
