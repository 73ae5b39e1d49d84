"""
Quote resolution across upstream sources.

소스 선택 정책 (심볼 단위):

KRX 종목
    1. 호출자가 KIS 자격증명을 주면 KIS만 사용 (실패 시 바로 종료)
    2. 아니면 네이버 모바일 → Yahoo(.KS, .KQ 순서)
       네이버 시세에 시가/고가/저가 또는 52주 고저가 비어 있으면
       1년 일봉으로 한 번만 보강한다. 보강 실패는 무시.
그 외
    Yahoo 한 번

각 단계는 순서대로 실행되며 재시도하지 않는다.
모든 단계가 실패하면 마지막 오류를 원인으로 QuoteUnavailable.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Protocol

from stockfolio.core.cache import TimedCache
from stockfolio.core.exceptions import (
    QuoteUnavailable,
    StockfolioError,
    UpstreamUnavailable,
)
from stockfolio.core.symbol import KRX_SUFFIXES, detect_market, to_yahoo_symbol
from stockfolio.models import MarketType, Quote
from stockfolio.services.kis import KISClient, KISCredential
from stockfolio.services.naver_finance import NaverFinanceClient
from stockfolio.services.quote_normalizer import (
    normalize_kis_price,
    normalize_naver_basic,
    normalize_yahoo_chart,
)
from stockfolio.services.stock_history import StockHistoryService, valid_bars
from stockfolio.services.yahoo import YahooFinanceClient

logger = logging.getLogger(__name__)

# 실시간 시세용 차트 파라미터
QUOTE_INTERVAL = "1m"
QUOTE_RANGE = "1d"

# 보강용 일봉 범위
BACKFILL_RANGE = "1y"
BACKFILL_INTERVAL = "1d"

NameLookup = Callable[[str], "str | None"]


class OutcomeStatus(str, enum.Enum):
    OK = "ok"
    INCOMPLETE = "incomplete"  # 시세는 있으나 보강 필요
    FAILED = "failed"


@dataclass(frozen=True)
class StrategyOutcome:
    status: OutcomeStatus
    quote: Quote | None = None
    error: StockfolioError | None = None

    @classmethod
    def ok(cls, quote: Quote) -> StrategyOutcome:
        return cls(OutcomeStatus.OK, quote=quote)

    @classmethod
    def incomplete(cls, quote: Quote) -> StrategyOutcome:
        return cls(OutcomeStatus.INCOMPLETE, quote=quote)

    @classmethod
    def failed(cls, error: StockfolioError) -> StrategyOutcome:
        return cls(OutcomeStatus.FAILED, error=error)


class QuoteStrategy(Protocol):
    name: str

    async def fetch(
        self, symbol: str, localized_name: str | None = None
    ) -> StrategyOutcome: ...


class KISQuoteStrategy:
    name = "kis"

    def __init__(self, client: KISClient):
        self.client = client

    async def fetch(
        self, symbol: str, localized_name: str | None = None
    ) -> StrategyOutcome:
        try:
            raw = await self.client.inquire_price(symbol)
            quote = normalize_kis_price(symbol, raw, localized_name=localized_name)
        except StockfolioError as e:
            return StrategyOutcome.failed(e)
        return StrategyOutcome.ok(quote)


class NaverMobileQuoteStrategy:
    name = "naver_mobile"

    def __init__(self, client: NaverFinanceClient):
        self.client = client

    async def fetch(
        self, symbol: str, localized_name: str | None = None
    ) -> StrategyOutcome:
        try:
            raw = await self.client.fetch_basic(symbol)
            quote = normalize_naver_basic(symbol, raw, localized_name=localized_name)
        except StockfolioError as e:
            return StrategyOutcome.failed(e)
        if quote.missing_ohlc or quote.missing_52_week:
            return StrategyOutcome.incomplete(quote)
        return StrategyOutcome.ok(quote)


class YahooKrxQuoteStrategy:
    """Yahoo에서 .KS → .KQ 순으로 국내 종목 조회"""

    name = "yahoo_krx"

    def __init__(self, client: YahooFinanceClient):
        self.client = client

    async def fetch(
        self, symbol: str, localized_name: str | None = None
    ) -> StrategyOutcome:
        last_error: StockfolioError | None = None
        for suffix in KRX_SUFFIXES:
            try:
                result = await self.client.fetch_chart(
                    symbol + suffix, QUOTE_INTERVAL, QUOTE_RANGE
                )
                quote = normalize_yahoo_chart(
                    symbol, result, krx=True, localized_name=localized_name
                )
            except StockfolioError as e:
                logger.debug("Yahoo %s%s failed: %s", symbol, suffix, e)
                last_error = e
                continue
            return StrategyOutcome.ok(quote)
        if last_error is None:
            last_error = UpstreamUnavailable("yahoo", f"no suffix tried for {symbol}")
        return StrategyOutcome.failed(last_error)


class YahooQuoteStrategy:
    name = "yahoo"

    def __init__(self, client: YahooFinanceClient):
        self.client = client

    async def fetch(
        self, symbol: str, localized_name: str | None = None
    ) -> StrategyOutcome:
        try:
            result = await self.client.fetch_chart(
                to_yahoo_symbol(symbol), QUOTE_INTERVAL, QUOTE_RANGE
            )
            quote = normalize_yahoo_chart(
                symbol, result, localized_name=localized_name
            )
        except StockfolioError as e:
            return StrategyOutcome.failed(e)
        return StrategyOutcome.ok(quote)


class QuoteResolver:
    def __init__(
        self,
        yahoo: YahooFinanceClient,
        naver: NaverFinanceClient,
        history: StockHistoryService,
        token_cache: TimedCache,
        name_lookup: NameLookup | None = None,
        kis_client_factory: Callable[[KISCredential, TimedCache], KISClient] = KISClient,
    ):
        self.yahoo = yahoo
        self.naver = naver
        self.history = history
        self.token_cache = token_cache
        self.name_lookup = name_lookup
        self.kis_client_factory = kis_client_factory

    def build_chain(
        self,
        symbol: str,
        market: MarketType | None = None,
        credential: KISCredential | None = None,
    ) -> list[QuoteStrategy]:
        """심볼에 적용할 소스 순서"""
        if detect_market(symbol, market) != MarketType.KRX:
            return [YahooQuoteStrategy(self.yahoo)]
        if credential is not None:
            client = self.kis_client_factory(credential, self.token_cache)
            return [KISQuoteStrategy(client)]
        return [NaverMobileQuoteStrategy(self.naver), YahooKrxQuoteStrategy(self.yahoo)]

    async def get_quote(
        self,
        symbol: str,
        market: MarketType | None = None,
        credential: KISCredential | None = None,
    ) -> Quote:
        """
        심볼 하나의 시세 조회

        Raises:
            QuoteUnavailable: 모든 소스 실패 (cause = 마지막 오류)
        """
        symbol = symbol.strip().upper()
        localized_name = self._localized_name(symbol, market)

        last_error: StockfolioError | None = None
        for strategy in self.build_chain(symbol, market, credential):
            outcome = await strategy.fetch(symbol, localized_name)
            if outcome.status is OutcomeStatus.OK:
                return outcome.quote
            if outcome.status is OutcomeStatus.INCOMPLETE:
                return await self._backfill(outcome.quote)

            last_error = outcome.error
            logger.info("%s quote source failed for %s: %s", strategy.name, symbol, last_error)

        logger.warning("All quote sources failed for %s", symbol)
        raise QuoteUnavailable(symbol, cause=last_error)

    async def get_quotes(
        self,
        symbols: Iterable[str],
        markets: Mapping[str, MarketType] | None = None,
        credential: KISCredential | None = None,
    ) -> tuple[dict[str, Quote], dict[str, StockfolioError]]:
        """
        여러 심볼을 동시에 조회. 하나의 실패가 나머지를 막지 않는다.

        Returns:
            (요청 심볼별 시세, 요청 심볼별 오류)
        """
        requested = list(dict.fromkeys(s for s in symbols if s and s.strip()))
        markets = markets or {}
        results = await asyncio.gather(
            *(
                self.get_quote(symbol, markets.get(symbol), credential)
                for symbol in requested
            ),
            return_exceptions=True,
        )

        quotes: dict[str, Quote] = {}
        errors: dict[str, StockfolioError] = {}
        for symbol, result in zip(requested, results):
            if isinstance(result, StockfolioError):
                errors[symbol] = result
            elif isinstance(result, Exception):
                logger.error(
                    "Unexpected error resolving %s: %s", symbol, result, exc_info=result
                )
                errors[symbol] = QuoteUnavailable(symbol.strip().upper(), cause=result)
            elif isinstance(result, BaseException):
                raise result
            else:
                quotes[symbol] = result
        return quotes, errors

    def _localized_name(self, symbol: str, market: MarketType | None) -> str | None:
        if self.name_lookup is None or detect_market(symbol, market) != MarketType.KRX:
            return None
        return self.name_lookup(symbol)

    async def _backfill(self, quote: Quote) -> Quote:
        """비어 있는(0) OHLC·52주 값만 1년 일봉으로 채운 새 Quote 반환"""
        try:
            bars = await self.history.get_history(
                quote.symbol, MarketType.KRX, BACKFILL_RANGE, BACKFILL_INTERVAL
            )
        except StockfolioError as e:
            logger.warning("Backfill failed for %s: %s", quote.symbol, e)
            return quote

        bars = valid_bars(bars)
        if not bars:
            logger.warning("Backfill for %s found no valid bars", quote.symbol)
            return quote

        latest = bars[-1]
        lows = [bar.low for bar in bars if bar.low > 0]
        return replace(
            quote,
            open=quote.open or latest.open,
            high=quote.high or latest.high,
            low=quote.low or latest.low,
            high_52_week=quote.high_52_week or max(bar.high for bar in bars),
            low_52_week=quote.low_52_week or (min(lows) if lows else 0.0),
        )
