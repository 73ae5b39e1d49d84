"""Naver Finance clients for Korean equities.

This module provides async access to:
- the mobile-web basic quote endpoint (m.stock.naver.com)
- the autocomplete search endpoint (ac.stock.naver.com)

Naver sometimes answers only from Korean IP ranges; callers must be ready
for ``UpstreamUnavailable`` and fall back to other sources.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from stockfolio.core.config import settings
from stockfolio.core.exceptions import NoSearchResults, UpstreamUnavailable
from stockfolio.models import AssetType, Currency, MarketType, SearchResult
from stockfolio.services.upstream import BROWSER_HEADERS, request_json

logger = logging.getLogger(__name__)

MOBILE_SOURCE = "naver_mobile"
SEARCH_SOURCE = "naver_search"

BASIC_PATH = "/api/stock/{code}/basic"
AUTOCOMPLETE_PATH = "/ac"

NAVER_HEADERS = BROWSER_HEADERS | {"Referer": "https://finance.naver.com"}

# 국내 상장 주식으로 취급하는 typeName
KRX_TYPE_NAMES = frozenset({"코스피", "코스닥"})


class NaverFinanceClient:
    def __init__(
        self,
        mobile_base_url: str | None = None,
        search_base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._mobile_base_url = (
            mobile_base_url or settings.naver_mobile_base_url
        ).rstrip("/")
        self._search_base_url = (
            search_base_url or settings.naver_search_base_url
        ).rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def fetch_basic(self, code: str) -> dict[str, Any]:
        """모바일 기본 시세 raw 응답

        URL: m.stock.naver.com/api/stock/{code}/basic
        """
        data = await request_json(
            MOBILE_SOURCE,
            "GET",
            self._mobile_base_url + BASIC_PATH.format(code=code),
            headers=NAVER_HEADERS,
            timeout=self._timeout,
            transport=self._transport,
        )
        if not isinstance(data, dict):
            raise UpstreamUnavailable(MOBILE_SOURCE, f"unexpected payload for {code}")
        return data

    async def fetch_autocomplete(self, query: str) -> list[dict[str, Any]]:
        """자동완성 raw items

        target=etf는 지원하지 않으며 target=stock에서도 ETF가 typeCode='etf'로 온다.
        """
        data = await request_json(
            SEARCH_SOURCE,
            "GET",
            self._search_base_url + AUTOCOMPLETE_PATH,
            params={"q": query, "target": "stock"},
            headers=NAVER_HEADERS,
            timeout=self._timeout,
            transport=self._transport,
        )
        if not isinstance(data, dict):
            raise UpstreamUnavailable(SEARCH_SOURCE, f"unexpected search payload for {query!r}")
        items = data.get("items")
        return items if isinstance(items, list) else []

    async def search_korean_stocks(self, query: str) -> list[SearchResult]:
        """한글 종목 검색 (국내 주식 + ETF)

        Raises:
            NoSearchResults: 응답은 정상이지만 국내 종목이 하나도 없을 때
            UpstreamUnavailable: 호출 실패
        """
        items = await self.fetch_autocomplete(query)
        results = to_search_results(items)
        if not results:
            raise NoSearchResults(query)
        return results[:10]


def to_search_results(items: list[dict[str, Any]]) -> list[SearchResult]:
    """자동완성 items → SearchResult (ETF 및 코스피/코스닥 주식만)"""
    results: list[SearchResult] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        type_code = item.get("typeCode")
        is_etf = type_code == "etf"
        is_krx_stock = type_code == "stock" and item.get("typeName") in KRX_TYPE_NAMES
        if not (is_etf or is_krx_stock):
            continue
        code = item.get("code")
        name = item.get("name")
        if not code or not name:
            continue
        results.append(
            SearchResult(
                symbol=str(code),
                name=str(name),
                market=MarketType.KRX,
                currency=Currency.KRW,
                asset_type=AssetType.etf if is_etf else AssetType.stock,
            )
        )
    return results
