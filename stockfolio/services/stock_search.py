"""
Symbol search across Naver autocomplete, Yahoo search and local reference data.

검색 경로
- 한글 포함: 네이버 자동완성 → 실패/무결과 시 로컬 주식+ETF (예외 없음)
- 숫자 1~6자리: 로컬 주식+ETF 우선, 없으면 영문 경로
- 그 외: Yahoo 검색과 로컬 ETF를 동시에 조회, ETF 먼저 + Yahoo 순으로 합침
결과는 최대 10개.
"""

from __future__ import annotations

import asyncio
import logging
import re

from stockfolio.core.exceptions import NoSearchResults, UpstreamUnavailable
from stockfolio.models import SearchResult
from stockfolio.reference import ReferenceIndex
from stockfolio.services.naver_finance import NaverFinanceClient
from stockfolio.services.yahoo import YahooFinanceClient

logger = logging.getLogger(__name__)

MAX_RESULTS = 10

# 한글 자모, 호환 자모, 완성형 음절
_HANGUL_RE = re.compile(r"[\u1100-\u11ff\u3130-\u318f\uac00-\ud7a3]")
_KR_CODE_RE = re.compile(r"^[0-9]{1,6}$")


def has_hangul(text: str) -> bool:
    return bool(_HANGUL_RE.search(text))


def is_korean_ticker_code(text: str) -> bool:
    return bool(_KR_CODE_RE.match(text))


class StockSearchService:
    def __init__(
        self,
        yahoo: YahooFinanceClient,
        naver: NaverFinanceClient,
        stocks: ReferenceIndex,
        etfs: ReferenceIndex,
    ):
        self.yahoo = yahoo
        self.naver = naver
        self.stocks = stocks
        self.etfs = etfs

    async def search(self, query: str) -> list[SearchResult]:
        """
        종목 검색

        Raises:
            UpstreamUnavailable: 영문 검색에서 Yahoo 호출이 실패하고 로컬 ETF 결과도 없을 때
        """
        query = query.strip()
        if not query:
            return []

        if has_hangul(query):
            return await self._search_korean(query)

        if is_korean_ticker_code(query):
            local = self._search_local(query)
            if local:
                return local
            logger.debug("No local match for code %s, trying Yahoo", query)

        return await self._search_global(query)

    async def _search_korean(self, query: str) -> list[SearchResult]:
        try:
            results = await self.naver.search_korean_stocks(query)
        except (UpstreamUnavailable, NoSearchResults) as e:
            logger.info("Naver search fallback to local data for %r: %s", query, e)
            return self._search_local(query)
        return results[:MAX_RESULTS]

    def _search_local(self, query: str) -> list[SearchResult]:
        merged = self.stocks.search(query) + self.etfs.search(query)
        return merged[:MAX_RESULTS]

    async def _search_local_etfs(self, query: str) -> list[SearchResult]:
        return self.etfs.search(query)

    async def _search_global(self, query: str) -> list[SearchResult]:
        yahoo_result, etf_result = await asyncio.gather(
            self.yahoo.search_stocks(query),
            self._search_local_etfs(query),
            return_exceptions=True,
        )

        if isinstance(etf_result, BaseException):
            logger.error("Local ETF search failed for %r: %s", query, etf_result)
            etf_result = []

        if isinstance(yahoo_result, UpstreamUnavailable):
            if not etf_result:
                raise yahoo_result
            logger.warning("Yahoo search failed for %r: %s", query, yahoo_result)
            yahoo_result = []
        elif isinstance(yahoo_result, BaseException):
            raise yahoo_result

        return (etf_result + yahoo_result)[:MAX_RESULTS]
