"""USD→KRW exchange rate with a timed cache and stale fallback."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

import httpx

from stockfolio.core.cache import TimedCache
from stockfolio.core.config import settings
from stockfolio.core.exceptions import UpstreamUnavailable
from stockfolio.services.upstream import request_json

logger = logging.getLogger(__name__)

SOURCE = "exchange_rate"
CACHE_KEY = "exchange_rate:USD:KRW"
LATEST_PATH = "/latest/USD"


class ExchangeRateService:
    def __init__(
        self,
        cache: TimedCache,
        base_url: str | None = None,
        ttl: float | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self._base_url = (base_url or settings.exchange_rate_base_url).rstrip("/")
        self._ttl = ttl if ttl is not None else settings.exchange_rate_ttl
        self._timeout = timeout
        self._transport = transport
        self._clock = clock

    async def get_usd_krw_rate(self) -> float:
        """
        1 USD 당 원화 환율

        - 캐시가 신선하면(기본 30분) 네트워크 호출 없이 반환
        - 갱신 실패 시 오래된 캐시 값이라도 반환

        Raises:
            UpstreamUnavailable: 갱신 실패 + 캐시 없음
        """
        entry = await self.cache.get(CACHE_KEY)
        if entry is not None and entry.is_fresh(self._clock()):
            return float(entry.value)

        try:
            rate = await self._fetch_rate()
        except UpstreamUnavailable as e:
            if entry is not None:
                logger.warning("Exchange rate refresh failed, using stale value: %s", e)
                return float(entry.value)
            logger.error("Exchange rate unavailable and no cached value: %s", e)
            raise

        await self.cache.set(CACHE_KEY, rate, ttl=self._ttl)
        logger.info("USD/KRW rate refreshed: %s", rate)
        return rate

    async def _fetch_rate(self) -> float:
        data = await request_json(
            SOURCE,
            "GET",
            self._base_url + LATEST_PATH,
            timeout=self._timeout,
            transport=self._transport,
        )
        rates = data.get("rates") if isinstance(data, dict) else None
        raw = rates.get("KRW") if isinstance(rates, dict) else None
        try:
            rate = float(raw)
        except (TypeError, ValueError):
            raise UpstreamUnavailable(SOURCE, "response has no KRW rate") from None
        if not math.isfinite(rate) or rate <= 0:
            raise UpstreamUnavailable(SOURCE, f"invalid KRW rate {raw!r}")
        return rate
