"""Historical OHLCV series via the Yahoo chart endpoint.

KRX symbols are not known to be KOSPI or KOSDAQ up front, so the ``.KS``
suffix is tried first and ``.KQ`` second; the first response that is not an
error wins, even when it carries no bars.
"""

from __future__ import annotations

import logging

import pandas as pd

from stockfolio.core.exceptions import UpstreamUnavailable
from stockfolio.core.symbol import KRX_SUFFIXES, detect_market, to_yahoo_symbol
from stockfolio.models import HistoricalDataPoint, MarketType
from stockfolio.services.yahoo import YahooFinanceClient, parse_chart_bars

logger = logging.getLogger(__name__)

# 조회 기간 → 봉 간격
RANGE_INTERVALS: dict[str, str] = {
    "1d": "5m",
    "5d": "15m",
    "1mo": "1d",
    "3mo": "1d",
    "6mo": "1d",
    "1y": "1wk",
    "2y": "1wk",
    "5y": "1mo",
    "10y": "1mo",
    "max": "3mo",
}
DEFAULT_INTERVAL = "1d"

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]


def resolve_interval(range_: str, interval: str | None = None) -> str:
    if interval:
        return interval
    return RANGE_INTERVALS.get(range_, DEFAULT_INTERVAL)


def valid_bars(bars: list[HistoricalDataPoint]) -> list[HistoricalDataPoint]:
    """종가가 0 이하인 봉(휴장일·결측 슬롯) 제외"""
    return [bar for bar in bars if bar.is_valid]


class StockHistoryService:
    def __init__(self, yahoo: YahooFinanceClient):
        self.yahoo = yahoo

    async def get_history(
        self,
        symbol: str,
        market: MarketType | None = None,
        range_: str = "1mo",
        interval: str | None = None,
    ) -> list[HistoricalDataPoint]:
        """
        기간별 OHLCV 조회

        Args:
            symbol: 종목 심볼 (KRX는 접미사 없는 6자리 코드)
            market: 명시하면 휴리스틱 대신 사용
            range_: 1d, 5d, 1mo, 3mo, 6mo, 1y, 2y, 5y, 10y, max
            interval: 생략 시 range_에 맞는 간격

        Returns:
            시간순 봉 목록 (결측 값은 0). KRX는 모든 접미사 실패 시 빈 목록.

        Raises:
            UpstreamUnavailable: KRX 외 종목 조회 실패
        """
        symbol = symbol.strip().upper()
        resolved_interval = resolve_interval(range_, interval)

        if detect_market(symbol, market) == MarketType.KRX:
            return await self._get_krx_history(symbol, range_, resolved_interval)

        result = await self.yahoo.fetch_chart(
            to_yahoo_symbol(symbol), resolved_interval, range_
        )
        return parse_chart_bars(result)

    async def _get_krx_history(
        self, symbol: str, range_: str, interval: str
    ) -> list[HistoricalDataPoint]:
        for suffix in KRX_SUFFIXES:
            try:
                result = await self.yahoo.fetch_chart(symbol + suffix, interval, range_)
            except UpstreamUnavailable as e:
                logger.debug("History %s%s failed: %s", symbol, suffix, e)
                continue
            return parse_chart_bars(result)

        logger.warning("No history for KRX symbol %s on any suffix", symbol)
        return []

    async def get_history_frame(
        self,
        symbol: str,
        market: MarketType | None = None,
        range_: str = "1mo",
        interval: str | None = None,
    ) -> pd.DataFrame:
        """get_history 결과를 date 인덱스의 OHLCV DataFrame으로 반환"""
        bars = await self.get_history(symbol, market, range_, interval)
        return bars_to_frame(bars)


def bars_to_frame(bars: list[HistoricalDataPoint]) -> pd.DataFrame:
    if not bars:
        return pd.DataFrame(
            columns=OHLCV_COLUMNS, index=pd.DatetimeIndex([], tz="UTC", name="date")
        )
    df = pd.DataFrame(
        [
            {
                "date": bar.date,
                "open": bar.open,
                "high": bar.high,
                "low": bar.low,
                "close": bar.close,
                "volume": bar.volume,
            }
            for bar in bars
        ]
    )
    df["date"] = pd.to_datetime(df["date"], utc=True)
    return df.set_index("date").sort_index()
