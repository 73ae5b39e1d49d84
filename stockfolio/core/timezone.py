"""
Timezone and trading-hours utilities.

KST (Korea Standard Time) is the default timezone for display; market
status is evaluated in each exchange's local time.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from stockfolio.models import MarketStatus, MarketType

# KST (한국 표준시, UTC+9)
KST = timezone(timedelta(hours=9))
NEW_YORK = ZoneInfo("America/New_York")


@dataclass(frozen=True)
class MarketSchedule:
    tz: timezone | ZoneInfo
    open_minutes: int
    close_minutes: int
    weekdays: frozenset[int] = frozenset({0, 1, 2, 3, 4})  # 월~금


KRX_SCHEDULE = MarketSchedule(tz=KST, open_minutes=9 * 60, close_minutes=15 * 60 + 30)
US_SCHEDULE = MarketSchedule(
    tz=NEW_YORK, open_minutes=9 * 60 + 30, close_minutes=16 * 60
)


def now_kst() -> datetime:
    """
    Get current datetime in KST.

    Returns:
        datetime: Current datetime with KST timezone
    """
    return datetime.now(KST)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def get_market_status(market: MarketType, now: datetime | None = None) -> MarketStatus:
    """
    Evaluate the session state of a market at ``now`` (default: current time).

    Holidays are not modelled; weekends are CLOSED, weekdays are split into
    PRE_MARKET / OPEN / AFTER_HOURS around the regular session.
    """
    schedule = KRX_SCHEDULE if market == MarketType.KRX else US_SCHEDULE
    local = (now or now_utc()).astimezone(schedule.tz)

    if local.weekday() not in schedule.weekdays:
        return MarketStatus.CLOSED

    minutes = local.hour * 60 + local.minute
    if minutes < schedule.open_minutes:
        return MarketStatus.PRE_MARKET
    if minutes >= schedule.close_minutes:
        return MarketStatus.AFTER_HOURS
    return MarketStatus.OPEN
