"""로컬 종목 DB (국내 주식 / ETF).

패키지에 포함된 JSON을 처음 접근할 때 한 번만 읽는다.
경로는 설정(kr_stocks_path, kr_etfs_path)으로 바꿀 수 있다.
갱신은 scripts/download_kr_stocks.py, scripts/download_kr_etfs.py 참고.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path

from stockfolio.core.config import settings
from stockfolio.models import AssetType, Currency, MarketType, SearchResult

logger = logging.getLogger(__name__)


class ReferenceIndex:
    """이름·심볼 부분 일치 검색용 종목 목록"""

    def __init__(self, entries: list[SearchResult]):
        self.entries = entries
        self._by_symbol = {entry.symbol.upper(): entry for entry in entries}

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, symbol: str) -> bool:
        return symbol.strip().upper() in self._by_symbol

    def get_by_symbol(self, symbol: str) -> SearchResult | None:
        return self._by_symbol.get(symbol.strip().upper())

    def search(self, query: str, limit: int | None = None) -> list[SearchResult]:
        """대소문자 무시 부분 일치 (이름 또는 심볼)"""
        needle = query.strip().lower()
        if not needle:
            return []
        matches = [
            entry
            for entry in self.entries
            if needle in entry.name.lower() or needle in entry.symbol.lower()
        ]
        return matches[:limit] if limit is not None else matches


def _parse_entry(item: dict, default_type: AssetType) -> SearchResult:
    return SearchResult(
        symbol=str(item["symbol"]).strip(),
        name=str(item["name"]).strip(),
        market=MarketType(item.get("market", MarketType.KRX.value)),
        currency=Currency(item.get("currency", Currency.KRW.value)),
        asset_type=AssetType(item.get("assetType", default_type.value)),
    )


def load_reference(path: Path, default_type: AssetType) -> ReferenceIndex:
    """JSON 목록 파일 → ReferenceIndex (파일이 없거나 깨졌으면 빈 인덱스)"""
    try:
        items = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("Reference data not found: %s", path)
        return ReferenceIndex([])
    except json.JSONDecodeError as e:
        logger.error("Reference data is not valid JSON: %s (%s)", path, e)
        return ReferenceIndex([])

    entries: list[SearchResult] = []
    for item in items:
        try:
            entries.append(_parse_entry(item, default_type))
        except (KeyError, ValueError) as e:
            logger.debug("Skipping reference entry %r: %s", item, e)
    logger.info("Loaded %d reference entries from %s", len(entries), path)
    return ReferenceIndex(entries)


@lru_cache(maxsize=1)
def get_kr_stocks() -> ReferenceIndex:
    return load_reference(settings.kr_stocks_path, AssetType.stock)


@lru_cache(maxsize=1)
def get_kr_etfs() -> ReferenceIndex:
    return load_reference(settings.kr_etfs_path, AssetType.etf)

