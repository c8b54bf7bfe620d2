from __future__ import annotations
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple

from packages.metrics_engine import TrendClass, VolatilityClass

# Upstream (range, interval) per supported period code
PERIOD_CONFIG: Mapping[str, Tuple[str, str]] = MappingProxyType({
    "1d": ("1d", "1h"),
    "5d": ("5d", "1d"),
    "1mo": ("1mo", "1d"),
    "3mo": ("3mo", "1d"),
})
DEFAULT_PERIOD = "1mo"

PERIOD_LABELS: Mapping[str, str] = MappingProxyType({
    "1d": "1 day",
    "5d": "5 days",
    "1mo": "1 month",
    "3mo": "3 months",
})

SINGLE_SESSION_LABEL = "1 day"
SHORT_PERIOD_LABELS = frozenset({"1 day", "5 days", "1 month"})

VOLATILITY_LINES: Mapping[VolatilityClass, str] = MappingProxyType({
    VolatilityClass.LOW: "• Small price swings, suggesting more stable behavior.",
    VolatilityClass.MODERATE: "• Moderate price swings, indicating the presence of controlled risk.",
    VolatilityClass.HIGH: "• Large price swings, indicating elevated risk.",
})

TREND_LINES: Mapping[TrendClass, str] = MappingProxyType({
    TrendClass.UP: "• Upward trend, suggesting upward strength in the current move.",
    TrendClass.DOWN: "• Downward trend, indicating weakening of the price.",
    TrendClass.SIDEWAYS: "• Sideways trend, indicating no clear direction.",
})

DISCLAIMER = "This analysis is educational and does not constitute investment advice."


@dataclass(frozen=True)
class DiagnosisInput:
    return_value: float
    volatility_class: VolatilityClass
    trend_class: TrendClass
    period_label: str


def period_label_for(code: str) -> str:
    """Display label for a period code; unknown codes pass through unchanged."""
    return PERIOD_LABELS.get(code, code)


def period_config_for(code: str) -> Tuple[str, str]:
    return PERIOD_CONFIG.get(code, PERIOD_CONFIG[DEFAULT_PERIOD])


def _opening(period_label: str) -> str:
    if period_label == SINGLE_SESSION_LABEL:
        return "In today's trading session, the asset's behavior indicates:"
    if period_label in SHORT_PERIOD_LABELS:
        return f"Over the last {period_label}, the asset's behavior indicates:"
    return f"Over the last {period_label}, the asset's historical behavior indicates:"


def _return_line(return_value: float) -> str:
    if not math.isfinite(return_value):
        raise ValueError(f"return must be a finite number, got {return_value!r}")
    if return_value >= 0:
        return f"• Return of {return_value * 100:.1f}%, indicating appreciation over the period."
    return f"• Decline of {abs(return_value * 100):.1f}%, indicating depreciation over the period."


def generate_diagnosis(params: DiagnosisInput) -> str:
    """
    Render the diagnosis paragraph for one set of metrics.

    Layout: opening sentence, blank line, one bullet per line (return,
    volatility, trend), blank line, disclaimer. Classification values are
    coerced to their enums first, so plain strings like "High" are accepted
    and anything else raises ValueError. A NaN or infinite return also
    raises ValueError.
    """
    vol_class = VolatilityClass(params.volatility_class)
    trend_class = TrendClass(params.trend_class)

    text = _opening(params.period_label) + "\n\n"
    text += _return_line(params.return_value) + "\n"
    text += VOLATILITY_LINES[vol_class] + "\n"
    text += TREND_LINES[trend_class] + "\n"
    text += "\n" + DISCLAIMER
    return text
