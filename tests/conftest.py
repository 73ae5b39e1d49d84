"""
Pytest configuration and common fixtures for stockfolio tests.
"""

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest


def _load_env_file(env_path: Path) -> None:
    """Load environment variables from a simple KEY=VALUE file."""
    if not env_path.is_file():
        return

    with env_path.open(encoding="utf-8") as env_file:
        for raw_line in env_file:
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, value = line.split("=", 1)
            os.environ.setdefault(key.strip(), value.strip())


def _ensure_test_env() -> None:
    """Ensure environment variables exist for tests."""
    project_root = Path(__file__).resolve().parents[1]

    # 1) 기본값: env.example, 개발자별 override는 .env.test
    _load_env_file(project_root / "env.example")
    _load_env_file(project_root / ".env.test")

    default_env_values = {
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "HTTP_TIMEOUT": "5",
    }
    for key, value in default_env_values.items():
        os.environ.setdefault(key, value)

    # 테스트는 항상 메모리 캐시, Sentry 비활성
    os.environ["REDIS_URL"] = ""
    os.environ["SENTRY_DSN"] = ""


_ensure_test_env()

from stockfolio.core.config import settings  # noqa: E402
from stockfolio.core.cache import MemoryTimedCache  # noqa: E402
from stockfolio.models import (  # noqa: E402
    Currency,
    HistoricalDataPoint,
    MarketStatus,
    MarketType,
    Quote,
)


class FakeClock:
    """수동으로 진행시키는 epoch 초 시계"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def app_settings():
    """Get application settings."""
    return settings


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache(clock):
    return MemoryTimedCache(clock=clock)


def make_quote(**overrides) -> Quote:
    values = {
        "symbol": "005930",
        "name": "삼성전자",
        "market": MarketType.KRX,
        "currency": Currency.KRW,
        "current_price": 75000.0,
        "previous_close": 74000.0,
        "change": 1000.0,
        "change_percent": 1.35,
        "volume": 1_000_000.0,
        "open": 74500.0,
        "high": 75500.0,
        "low": 74200.0,
        "high_52_week": 88000.0,
        "low_52_week": 60000.0,
        "market_status": MarketStatus.OPEN,
        "updated_at": datetime(2024, 3, 4, 1, 0, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return Quote(**values)


def make_bar(day: int, close: float, **overrides) -> HistoricalDataPoint:
    values = {
        "date": datetime(2024, 1, day, tzinfo=timezone.utc),
        "open": close - 100,
        "high": close + 200,
        "low": close - 300,
        "close": close,
        "volume": 1000.0,
    }
    values.update(overrides)
    return HistoricalDataPoint(**values)


@pytest.fixture
def quote_factory():
    return make_quote


@pytest.fixture
def bar_factory():
    return make_bar
