from __future__ import annotations
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from packages.metrics_engine import TrendClass, VolatilityClass


class CamelModel(BaseModel):
    # Serialized with camelCase keys to match the browser client
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Ticker(CamelModel):
    symbol: str
    name: Optional[str] = None
    logo: Optional[str] = None
    sector: Optional[str] = None
    type: Optional[str] = None


class TickerSearchResponse(CamelModel):
    tickers: List[Ticker] = Field(default_factory=list)


class DiagnosisResponse(CamelModel):
    symbol: str
    short_name: Optional[str] = None
    long_name: Optional[str] = None
    logo_url: Optional[str] = None
    period: str
    return_value: float = Field(..., alias="return")
    volatility: VolatilityClass
    volatility_value: float
    moving_average: float
    trend: TrendClass
    diagnosis: str
    prices: List[float]
    timestamps: List[Optional[int]]
    current_price: Optional[float] = None
    change_percent: Optional[float] = None


class MarketIndex(CamelModel):
    symbol: Optional[str] = None
    name: str
    price: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None


class MarketStock(CamelModel):
    symbol: Optional[str] = None
    name: Optional[str] = None
    price: Optional[float] = None
    change: Optional[float] = None
    volume: Optional[float] = None
    logo: Optional[str] = None
    sector: Optional[str] = None


class MarketOverview(CamelModel):
    indices: List[MarketIndex]
    top_gainers: List[MarketStock]
    top_losers: List[MarketStock]
    most_traded: List[MarketStock]
    total_volume: float
    updated_at: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
