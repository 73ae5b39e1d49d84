#!/usr/bin/env python3
"""
네이버 금융 ETF 목록 API에서 국내 ETF 전체 목록을 받아 로컬 ETF DB(JSON)로 저장

Usage:
    uv run python scripts/download_kr_etfs.py
"""

import asyncio

from stockfolio.core.config import settings
from stockfolio.reference.download import fetch_naver_etfs, write_reference


async def main():
    rows = await fetch_naver_etfs()
    write_reference(rows, settings.kr_etfs_path)
    print(f"완료: {len(rows)}개 ETF → {settings.kr_etfs_path}")


if __name__ == "__main__":
    asyncio.run(main())
