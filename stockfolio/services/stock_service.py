"""
Stock Service

시세·검색·차트·환율·포트폴리오 평가를 묶은 진입점.
라우터와 스크립트는 이 클래스만 사용한다.
"""
import logging
from collections.abc import Mapping, Sequence

from stockfolio.core.cache import TimedCache, build_cache
from stockfolio.core.config import settings
from stockfolio.core.exceptions import UpstreamUnavailable
from stockfolio.models import (
    HistoricalDataPoint,
    MarketType,
    PortfolioItem,
    PortfolioSummary,
    Quote,
    SearchResult,
)
from stockfolio.reference import ReferenceIndex, get_kr_etfs, get_kr_stocks
from stockfolio.services.exchange_rate import ExchangeRateService
from stockfolio.services.kis import KISCredential
from stockfolio.services.naver_finance import NaverFinanceClient
from stockfolio.services.portfolio_valuation import is_etf_holding, summarize
from stockfolio.services.quote_resolver import QuoteResolver
from stockfolio.services.stock_history import StockHistoryService
from stockfolio.services.stock_search import StockSearchService
from stockfolio.services.yahoo import YahooFinanceClient

logger = logging.getLogger(__name__)


class StockService:
    def __init__(
        self,
        cache: TimedCache | None = None,
        yahoo: YahooFinanceClient | None = None,
        naver: NaverFinanceClient | None = None,
        stocks: ReferenceIndex | None = None,
        etfs: ReferenceIndex | None = None,
    ):
        self.cache = cache if cache is not None else build_cache()
        self.yahoo = yahoo or YahooFinanceClient()
        self.naver = naver or NaverFinanceClient()
        self.stocks = stocks if stocks is not None else get_kr_stocks()
        self.etfs = etfs if etfs is not None else get_kr_etfs()

        self.history = StockHistoryService(self.yahoo)
        self.resolver = QuoteResolver(
            yahoo=self.yahoo,
            naver=self.naver,
            history=self.history,
            token_cache=self.cache,
            name_lookup=self._korean_name,
        )
        self.search = StockSearchService(self.yahoo, self.naver, self.stocks, self.etfs)
        self.exchange_rate = ExchangeRateService(self.cache)

    def _korean_name(self, symbol: str) -> str | None:
        entry = self.stocks.get_by_symbol(symbol) or self.etfs.get_by_symbol(symbol)
        return entry.name if entry else None

    async def get_quote(
        self,
        symbol: str,
        market: MarketType | None = None,
        credential: KISCredential | None = None,
    ) -> Quote:
        return await self.resolver.get_quote(symbol, market, credential)

    async def get_quotes(
        self,
        symbols: Sequence[str],
        markets: Mapping[str, MarketType] | None = None,
        credential: KISCredential | None = None,
    ):
        return await self.resolver.get_quotes(symbols, markets, credential)

    async def search_stocks(self, query: str) -> list[SearchResult]:
        return await self.search.search(query)

    async def get_stock_history(
        self,
        symbol: str,
        market: MarketType | None = None,
        range_: str = "1mo",
        interval: str | None = None,
    ) -> list[HistoricalDataPoint]:
        return await self.history.get_history(symbol, market, range_, interval)

    async def get_usd_krw_rate(self) -> float:
        return await self.exchange_rate.get_usd_krw_rate()

    async def get_usd_krw_rate_or_default(self) -> tuple[float, bool]:
        """(환율, 기본값 사용 여부). 조회 실패 시 설정의 기본 환율"""
        try:
            return await self.get_usd_krw_rate(), False
        except UpstreamUnavailable as e:
            logger.warning(
                "Using default USD/KRW rate %s: %s", settings.usd_krw_fallback_rate, e
            )
            return settings.usd_krw_fallback_rate, True

    def is_etf(self, item: PortfolioItem) -> bool:
        return is_etf_holding(item, lambda symbol: symbol in self.etfs)

    async def summarize_portfolio(
        self,
        holdings: Sequence[PortfolioItem],
        quotes_by_symbol: Mapping[str, Quote] | None = None,
        exchange_rate: float | None = None,
        credential: KISCredential | None = None,
    ) -> tuple[PortfolioSummary, float, dict[str, str]]:
        """
        포트폴리오 평가

        주어지지 않은 시세와 환율은 조회한다. 시세 조회에 실패한 종목은
        평단가로 평가되고 symbols_in_error에 사유가 담긴다.

        Returns:
            (요약, 사용한 환율, 심볼별 오류 메시지)
        """
        quotes: dict[str, Quote] = dict(quotes_by_symbol or {})
        missing = [item for item in holdings if item.symbol not in quotes]

        symbols_in_error: dict[str, str] = {}
        if missing:
            fetched, errors = await self.resolver.get_quotes(
                [item.symbol for item in missing],
                {item.symbol: item.market for item in missing},
                credential,
            )
            quotes.update(fetched)
            symbols_in_error = {symbol: str(e) for symbol, e in errors.items()}

        if exchange_rate is None:
            exchange_rate, _ = await self.get_usd_krw_rate_or_default()

        summary = summarize(holdings, quotes, exchange_rate, is_etf=self.is_etf)
        return summary, exchange_rate, symbols_in_error
