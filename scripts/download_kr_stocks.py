#!/usr/bin/env python3
"""
KIND(기업공시채널)에서 KOSPI/KOSDAQ 전체 종목 목록을 받아 로컬 종목 DB(JSON)로 저장

Usage:
    uv run python scripts/download_kr_stocks.py
"""

import asyncio

from stockfolio.core.config import settings
from stockfolio.reference.download import fetch_kind_stocks, write_reference


async def main():
    kospi = await fetch_kind_stocks("KOSPI")
    kosdaq = await fetch_kind_stocks("KOSDAQ")
    rows = kospi + kosdaq

    write_reference(rows, settings.kr_stocks_path)
    print(f"완료: {len(rows)}개 종목 → {settings.kr_stocks_path}")
    print(f"  KOSPI {len(kospi)}개 / KOSDAQ {len(kosdaq)}개")


if __name__ == "__main__":
    asyncio.run(main())
