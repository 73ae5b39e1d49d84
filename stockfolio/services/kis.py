import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from stockfolio.core.cache import TimedCache
from stockfolio.core.config import settings
from stockfolio.core.exceptions import UpstreamUnavailable
from stockfolio.services.upstream import request_json

logger = logging.getLogger(__name__)

SOURCE = "kis"
TOKEN_URL = "/oauth2/tokenP"
PRICE_TR = "FHKST01010100"
PRICE_URL = "/uapi/domestic-stock/v1/quotations/inquire-price"

# 토큰 만료 또는 유효하지 않은 토큰
TOKEN_ERROR_CODES = frozenset({"EGW00123", "EGW00121"})


@dataclass(frozen=True)
class KISCredential:
    """호출자가 제공하는 앱키/시크릿 쌍"""

    app_key: str
    app_secret: str

    def __repr__(self) -> str:
        return f"KISCredential(app_key={self.app_key[:4]}...)"


class KISClient:
    def __init__(
        self,
        credential: KISCredential,
        token_cache: TimedCache,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._credential = credential
        self._token_cache = token_cache
        self._base_url = (base_url or settings.kis_base_url).rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._clock = clock
        self._hdr_base = {
            "content-type": "application/json",
            "appkey": credential.app_key,
            "appsecret": credential.app_secret,
            "custtype": "P",
        }

    @property
    def _token_key(self) -> str:
        return f"kis:access_token:{self._credential.app_key}"

    async def _fetch_token(self) -> tuple[str, int]:
        """KIS API에서 새 토큰 발급"""
        response = await request_json(
            SOURCE,
            "POST",
            f"{self._base_url}{TOKEN_URL}",
            json={
                "grant_type": "client_credentials",
                "appkey": self._credential.app_key,
                "appsecret": self._credential.app_secret,
            },
            timeout=self._timeout,
            transport=self._transport,
        )
        if not isinstance(response, dict):
            raise UpstreamUnavailable(SOURCE, "unexpected token payload")
        access_token = response.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise UpstreamUnavailable(SOURCE, "token response without access_token")
        try:
            expires_in = int(response.get("expires_in", 3600))  # 기본 1시간
        except (TypeError, ValueError, OverflowError):
            raise UpstreamUnavailable(
                SOURCE, f"invalid expires_in {response.get('expires_in')!r}"
            ) from None

        logger.info("KIS 새 토큰 발급 완료 (만료: %s초)", expires_in)
        return access_token, expires_in

    async def _ensure_token(self) -> str:
        """캐시에서 토큰을 가져오거나 새로 발급

        동시에 여러 요청이 발급할 수 있지만 마지막 값이 남을 뿐 무해하다.
        """
        entry = await self._token_cache.get(self._token_key)
        if entry is not None and entry.is_fresh(self._clock()):
            return entry.value

        access_token, expires_in = await self._fetch_token()
        ttl = max(expires_in - settings.kis_token_expiry_buffer, 0)
        await self._token_cache.set(self._token_key, access_token, ttl=ttl)
        return access_token

    async def inquire_price(self, code: str, market: str = "J") -> dict[str, Any]:
        """
        단일 종목 현재가·기본정보 조회
        :param code: 6자리 종목코드(005930)
        :param market: K(코스피)/Q(코스닥)/J(통합)
        :return: API output 딕셔너리
        """
        token = await self._ensure_token()

        hdr = self._hdr_base | {
            "authorization": f"Bearer {token}",
            "tr_id": PRICE_TR,
        }
        params = {
            "FID_COND_MRKT_DIV_CODE": market,
            "FID_INPUT_ISCD": code.zfill(6),  # 000000 형태도 OK
        }
        js = await request_json(
            SOURCE,
            "GET",
            f"{self._base_url}{PRICE_URL}",
            headers=hdr,
            params=params,
            timeout=self._timeout,
            transport=self._transport,
        )
        if not isinstance(js, dict):
            raise UpstreamUnavailable(SOURCE, f"unexpected payload for {code}")
        if js.get("rt_cd") != "0":
            if js.get("msg_cd") in TOKEN_ERROR_CODES:
                # 다음 호출에서 새로 발급받도록 캐시만 비우고 재시도는 하지 않음
                await self._token_cache.delete(self._token_key)
            raise UpstreamUnavailable(
                SOURCE, f'{js.get("msg_cd")} {js.get("msg1")}'.strip()
            )
        out = js.get("output")
        if not isinstance(out, dict):
            raise UpstreamUnavailable(SOURCE, f"no output for {code}")
        return out
