"""Yahoo Finance chart/search client (global fallback source)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote as url_quote

import httpx

from stockfolio.core.config import settings
from stockfolio.core.exceptions import UpstreamUnavailable
from stockfolio.core.symbol import (
    is_krx_exchange_code,
    map_exchange_code,
    strip_krx_suffix,
)
from stockfolio.models import (
    AssetType,
    Currency,
    HistoricalDataPoint,
    SearchResult,
)
from stockfolio.services.upstream import BROWSER_HEADERS, request_json

logger = logging.getLogger(__name__)

SOURCE = "yahoo"
CHART_PATH = "/v8/finance/chart/{symbol}"
SEARCH_PATH = "/v1/finance/search"


class YahooFinanceClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.yahoo_base_url).rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def fetch_chart(self, symbol: str, interval: str, range_: str) -> dict[str, Any]:
        """차트 API 호출 후 첫 번째 result 반환

        Raises:
            UpstreamUnavailable: 전송 실패, 비정상 상태 코드, chart.error, 빈 result
        """
        url = self._base_url + CHART_PATH.format(symbol=url_quote(symbol, safe=""))
        data = await request_json(
            SOURCE,
            "GET",
            url,
            params={"interval": interval, "range": range_},
            headers=BROWSER_HEADERS,
            timeout=self._timeout,
            transport=self._transport,
        )
        chart = data.get("chart") if isinstance(data, dict) else None
        if not isinstance(chart, dict):
            raise UpstreamUnavailable(SOURCE, f"unexpected chart payload for {symbol}")
        error = chart.get("error")
        if error:
            if isinstance(error, dict):
                message = error.get("description") or error.get("message") or str(error)
            else:
                message = str(error)
            raise UpstreamUnavailable(SOURCE, f"chart error for {symbol}: {message}")
        results = chart.get("result")
        if not isinstance(results, list) or not results:
            raise UpstreamUnavailable(SOURCE, f"no chart data for {symbol}")
        if not isinstance(results[0], dict):
            raise UpstreamUnavailable(SOURCE, f"unexpected chart result for {symbol}")
        return results[0]

    async def search(self, query: str, quotes_count: int = 10) -> list[dict[str, Any]]:
        """검색 API의 raw quotes 목록"""
        data = await request_json(
            SOURCE,
            "GET",
            self._base_url + SEARCH_PATH,
            params={"q": query, "quotesCount": quotes_count, "newsCount": 0},
            headers=BROWSER_HEADERS,
            timeout=self._timeout,
            transport=self._transport,
        )
        if not isinstance(data, dict):
            raise UpstreamUnavailable(SOURCE, f"unexpected search payload for {query!r}")
        quotes = data.get("quotes")
        return quotes if isinstance(quotes, list) else []

    async def search_stocks(self, query: str) -> list[SearchResult]:
        """주식(EQUITY)만 남긴 검색 결과"""
        return to_search_results(await self.search(query))


def to_search_results(quotes: list[dict[str, Any]]) -> list[SearchResult]:
    """Yahoo 검색 결과 → SearchResult (EQUITY 외 유형은 제외)

    한국 거래소 종목은 .KS/.KQ 접미사를 제거해 KRX 심볼로 저장한다.
    """
    results: list[SearchResult] = []
    for item in quotes:
        if not isinstance(item, dict) or item.get("quoteType") != "EQUITY":
            continue
        raw_symbol = item.get("symbol")
        if not raw_symbol:
            continue
        exchange = item.get("exchange")
        is_korean = is_krx_exchange_code(exchange)
        symbol = strip_krx_suffix(raw_symbol) if is_korean else raw_symbol
        results.append(
            SearchResult(
                symbol=symbol,
                name=item.get("shortname") or item.get("longname") or raw_symbol,
                market=map_exchange_code(exchange),
                currency=Currency.KRW if is_korean else Currency.USD,
                asset_type=AssetType.stock,
            )
        )
    return results


def _value_at(values: Any, index: int) -> float:
    # null 또는 숫자가 아닌 값은 0 (valid_bars에서 걸러짐)
    if not isinstance(values, list) or index >= len(values):
        return 0.0
    value = values[index]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def parse_chart_bars(result: dict[str, Any]) -> list[HistoricalDataPoint]:
    """차트 result의 timestamp + indicators.quote[0] → OHLCV 목록 (null은 0)"""
    timestamps = result.get("timestamp")
    indicators = result.get("indicators")
    quotes = indicators.get("quote") if isinstance(indicators, dict) else None
    if not isinstance(timestamps, list) or not isinstance(quotes, list) or not quotes:
        return []
    ohlcv = quotes[0] if isinstance(quotes[0], dict) else {}

    bars: list[HistoricalDataPoint] = []
    for i, ts in enumerate(timestamps):
        if isinstance(ts, bool) or not isinstance(ts, (int, float)):
            continue
        try:
            date = datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            continue
        bars.append(
            HistoricalDataPoint(
                date=date,
                open=_value_at(ohlcv.get("open"), i),
                high=_value_at(ohlcv.get("high"), i),
                low=_value_at(ohlcv.get("low"), i),
                close=_value_at(ohlcv.get("close"), i),
                volume=_value_at(ohlcv.get("volume"), i),
            )
        )
    return bars
