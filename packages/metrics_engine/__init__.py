from __future__ import annotations
import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np
import pandas as pd

# Bucket boundaries for daily-return dispersion
VOLATILITY_LOW_MAX = 0.01
VOLATILITY_MODERATE_MAX = 0.02

# Price must clear the moving average by 1% either way to count as a trend
TREND_UPPER_BAND = 1.01
TREND_LOWER_BAND = 0.99

DEFAULT_MA_WINDOW = 50


class VolatilityClass(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"


class TrendClass(str, Enum):
    UP = "Up"
    DOWN = "Down"
    SIDEWAYS = "Sideways"


@dataclass(frozen=True)
class SeriesMetrics:
    return_value: float
    volatility: float
    volatility_class: VolatilityClass
    moving_average: float
    trend_class: TrendClass


def _as_series(prices: Sequence[float]) -> pd.Series:
    """
    Fresh, zero-based float Series of the finite prices in ``prices``.

    Accepts lists, tuples, numpy arrays and pandas Series with any index;
    NaN and infinite entries are dropped. Callers' sequences are never touched.
    """
    if prices is None:
        return pd.Series(dtype="float64")
    s = pd.Series(list(prices), dtype="float64")
    return s.replace([np.inf, -np.inf], np.nan).dropna().reset_index(drop=True)


def compute_return(prices: Sequence[float]) -> float:
    """
    Cumulative return over the whole series as a decimal fraction (0.38 = 38%).

    Fewer than two prices, or a zero first price, yield 0.0.
    """
    s = _as_series(prices)
    if len(s) < 2:
        return 0.0
    first = float(s.iloc[0])
    last = float(s.iloc[-1])
    if first == 0:
        return 0.0
    return (last - first) / first


def daily_returns(prices: Sequence[float]) -> pd.Series:
    """Day-over-day simple returns; steps off a zero price are dropped."""
    s = _as_series(prices)
    if len(s) < 2:
        return pd.Series(dtype="float64")
    prev = s.shift(1).iloc[1:]
    rets = (s.iloc[1:] - prev) / prev
    return rets.replace([np.inf, -np.inf], np.nan).dropna().reset_index(drop=True)


def compute_volatility(prices: Sequence[float]) -> float:
    """
    Standard deviation of daily returns, dividing by the number of returns
    (population form, ddof=0). Fewer than two prices yield 0.0.
    """
    rets = daily_returns(prices)
    if rets.empty:
        return 0.0
    return float(rets.std(ddof=0))


def classify_volatility(vol: float) -> VolatilityClass:
    if not math.isfinite(vol):
        raise ValueError(f"volatility must be a finite number, got {vol!r}")
    if vol < VOLATILITY_LOW_MAX:
        return VolatilityClass.LOW
    if vol < VOLATILITY_MODERATE_MAX:
        return VolatilityClass.MODERATE
    return VolatilityClass.HIGH


def moving_average(prices: Sequence[float], window: int = DEFAULT_MA_WINDOW) -> float:
    """Mean of the last min(window, len(prices)) prices; 0.0 for an empty series."""
    s = _as_series(prices)
    if s.empty:
        return 0.0
    n = max(1, min(int(window), len(s)))
    return float(s.tail(n).mean())


def classify_trend(prices: Sequence[float]) -> TrendClass:
    s = _as_series(prices)
    if len(s) < 2:
        return TrendClass.SIDEWAYS
    current = float(s.iloc[-1])
    avg = moving_average(s, min(DEFAULT_MA_WINDOW, len(s)))
    if current > avg * TREND_UPPER_BAND:
        return TrendClass.UP
    if current < avg * TREND_LOWER_BAND:
        return TrendClass.DOWN
    return TrendClass.SIDEWAYS


def summarize(prices: Sequence[float]) -> SeriesMetrics:
    """Compute every metric the dashboard shows for one price series."""
    s = _as_series(prices)
    vol = compute_volatility(s)
    return SeriesMetrics(
        return_value=compute_return(s),
        volatility=vol,
        volatility_class=classify_volatility(vol),
        moving_average=moving_average(s),
        trend_class=classify_trend(s),
    )
