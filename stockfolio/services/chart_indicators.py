"""Chart helpers: candle filtering, yearly candles and moving averages."""

from __future__ import annotations

from typing import Any

import pandas as pd

PRICE_MA_WINDOWS = (5, 20, 60, 120)
VOLUME_MA_WINDOW = 20


def filter_valid_candles(df: pd.DataFrame) -> pd.DataFrame:
    """OHLC 중 하나라도 0 이하인 봉 제거"""
    if df.empty:
        return df
    mask = (df[["open", "high", "low", "close"]] > 0).all(axis=1)
    return df.loc[mask]


def aggregate_yearly(df: pd.DataFrame) -> pd.DataFrame:
    """연봉 변환: 시가=첫 시가, 고가=최고, 저가=최저, 종가=마지막 종가, 거래량=합계"""
    if df.empty:
        return df
    years = df.index.year
    grouped = df.groupby(years)
    yearly = pd.DataFrame(
        {
            "open": grouped["open"].first(),
            "high": grouped["high"].max(),
            "low": grouped["low"].min(),
            "close": grouped["close"].last(),
            "volume": grouped["volume"].sum(),
        }
    )
    # 연도 → 해당 연도 첫 봉의 시각
    first_dates = pd.Series(df.index, index=df.index).groupby(years).first()
    yearly.index = pd.DatetimeIndex(first_dates.loc[yearly.index].tolist(), name="date")
    return yearly


def add_moving_averages(df: pd.DataFrame) -> pd.DataFrame:
    """ma5/ma20/ma60/ma120 (종가), vma20 (거래량). 창이 다 차기 전엔 NaN"""
    out = df.copy()
    for window in PRICE_MA_WINDOWS:
        out[f"ma{window}"] = (
            out["close"].rolling(window=window, min_periods=window).mean()
        )
    out[f"vma{VOLUME_MA_WINDOW}"] = (
        out["volume"]
        .rolling(window=VOLUME_MA_WINDOW, min_periods=VOLUME_MA_WINDOW)
        .mean()
    )
    return out


def build_chart_frame(
    df: pd.DataFrame, *, yearly: bool = False, indicators: bool = True
) -> pd.DataFrame:
    chart = filter_valid_candles(df)
    if yearly:
        chart = aggregate_yearly(chart)
    if indicators and not chart.empty:
        chart = add_moving_averages(chart)
    return chart


def frame_to_records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame → JSON 직렬화 가능한 dict 목록 (NaN은 None)"""
    records: list[dict[str, Any]] = []
    for ts, row in df.iterrows():
        record: dict[str, Any] = {"date": pd.Timestamp(ts).isoformat()}
        for column, value in row.items():
            record[str(column)] = None if pd.isna(value) else float(value)
        records.append(record)
    return records
