"""로컬 종목 DB 갱신용 다운로드/파싱 함수

- 주식: KIND(기업공시채널) 상장법인 목록 (HTML 표, EUC-KR)
- ETF: 네이버 금융 ETF 목록 API (JSON)
"""
import json
import logging
import re
from pathlib import Path

import httpx
from bs4 import BeautifulSoup

from stockfolio.core.exceptions import UpstreamUnavailable
from stockfolio.services.upstream import BROWSER_HEADERS, request_json

logger = logging.getLogger(__name__)

KIND_URL = "https://kind.krx.co.kr/corpgeneral/corpList.do"
KIND_MARKETS = {"KOSPI": "stockMkt", "KOSDAQ": "kosdaqMkt"}
NAVER_ETF_URL = "https://finance.naver.com/api/sise/etfItemList.naver"

_CODE_RE = re.compile(r"^\d{6}$")


def parse_kind_table(html: str) -> list[dict]:
    """KIND 다운로드 HTML 표 → [{symbol, name, market, currency, assetType}]

    헤더에서 회사명/종목코드 열을 찾고, 못 찾으면 0번/1번 열을 쓴다.
    """
    soup = BeautifulSoup(html, "lxml")
    headers = [th.get_text(strip=True) for th in soup.find_all("th")]
    name_idx = next(
        (i for i, h in enumerate(headers) if "회사명" in h or "종목명" in h), 0
    )
    code_idx = next((i for i, h in enumerate(headers) if "종목코드" in h), 1)

    rows: list[dict] = []
    for tr in soup.find_all("tr"):
        cells = [td.get_text(strip=True) for td in tr.find_all("td")]
        if len(cells) <= max(name_idx, code_idx):
            continue
        name = cells[name_idx]
        symbol = re.sub(r"\s", "", cells[code_idx]).zfill(6)
        if name and _CODE_RE.match(symbol):
            rows.append(
                {
                    "symbol": symbol,
                    "name": name,
                    "market": "KRX",
                    "currency": "KRW",
                    "assetType": "stock",
                }
            )
    return rows


def parse_naver_etf_list(data: dict) -> list[dict]:
    """etfItemList 응답 → [{symbol, name, market, currency, assetType}]"""
    result = data.get("result") if isinstance(data, dict) else None
    items = result.get("etfItemList") if isinstance(result, dict) else None
    rows: list[dict] = []
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict):
            continue
        code = str(item.get("itemcode") or "").strip()
        name = str(item.get("itemname") or "").strip()
        if code and name:
            rows.append(
                {
                    "symbol": code,
                    "name": name,
                    "market": "KRX",
                    "currency": "KRW",
                    "assetType": "etf",
                }
            )
    return rows


async def fetch_kind_stocks(market_label: str) -> list[dict]:
    params = {
        "method": "download",
        "searchType": "13",
        "marketType": KIND_MARKETS[market_label],
    }
    headers = BROWSER_HEADERS | {"Referer": KIND_URL, "Accept": "text/html,*/*"}
    try:
        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.get(KIND_URL, params=params, headers=headers)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable("kind", f"{market_label} download failed: {exc}") from exc

    try:
        html = response.content.decode("euc-kr")
    except UnicodeDecodeError:
        html = response.content.decode("utf-8", errors="replace")

    rows = parse_kind_table(html)
    if not rows:
        raise UpstreamUnavailable("kind", f"{market_label} table could not be parsed")
    logger.info("KIND %s: %d rows", market_label, len(rows))
    return rows


async def fetch_naver_etfs() -> list[dict]:
    data = await request_json(
        "naver_etf",
        "GET",
        NAVER_ETF_URL,
        headers=BROWSER_HEADERS | {"Referer": "https://finance.naver.com/sise/etf.naver"},
        timeout=30,
    )
    rows = parse_naver_etf_list(data if isinstance(data, dict) else {})
    if not rows:
        raise UpstreamUnavailable("naver_etf", "empty ETF list")
    return rows


def write_reference(rows: list[dict], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")
