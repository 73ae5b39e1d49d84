"""Shared HTTP plumbing for upstream market-data sources.

Every transport error, timeout, non-2xx status and undecodable body is
reported as ``UpstreamUnavailable`` so the fallback chains can treat them
uniformly.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from stockfolio.core.config import settings
from stockfolio.core.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

# Request headers to mimic browser
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
}


async def request_json(
    source: str,
    method: str,
    url: str,
    *,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    **kwargs: Any,
) -> Any:
    """Perform one HTTP request and return the decoded JSON body."""
    try:
        async with httpx.AsyncClient(
            timeout=timeout or settings.http_timeout,
            transport=transport,
            follow_redirects=True,
        ) as client:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPStatusError as exc:
        raise UpstreamUnavailable(
            source, f"HTTP {exc.response.status_code} from {url}"
        ) from exc
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(
            source, f"{type(exc).__name__} calling {url}: {exc}"
        ) from exc
    except ValueError as exc:
        # JSON 디코딩 실패
        raise UpstreamUnavailable(source, f"invalid JSON from {url}") from exc
