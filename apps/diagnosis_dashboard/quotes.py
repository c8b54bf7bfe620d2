from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from packages.diagnosis_toolkit import period_config_for

logger = logging.getLogger(__name__)

INDEX_SYMBOL = "^BVSP"
INDEX_FALLBACK_NAME = "IBOVESPA"
OVERVIEW_LIST_SIZE = 5


class QuoteGatewayError(Exception):
    """Base error for failures talking to the quote provider."""


class MissingTokenError(QuoteGatewayError):
    pass


class UpstreamError(QuoteGatewayError):
    pass


class TickerNotFoundError(QuoteGatewayError):
    def __init__(self, symbol: str):
        super().__init__(f"Invalid ticker or no data available for {symbol}")
        self.symbol = symbol


class NoHistoricalDataError(QuoteGatewayError):
    def __init__(self, symbol: str):
        super().__init__(f"No historical data available for {symbol}")
        self.symbol = symbol


def _format_stock(stock: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "symbol": stock.get("stock"),
        "name": stock.get("name"),
        "price": stock.get("close"),
        "change": stock.get("change"),
        "volume": stock.get("volume"),
        "logo": stock.get("logo"),
        "sector": stock.get("sector"),
    }


class BrapiClient:
    """Async client for the brapi.dev quote API."""

    def __init__(
        self,
        token: Optional[str],
        base_url: str = "https://brapi.dev",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.token:
            raise MissingTokenError("BRAPI_TOKEN not configured")
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.token}"},
            transport=self.transport,
        )

    async def _get(
        self, client: httpx.AsyncClient, path: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        try:
            r = await client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning("brapi request to %s failed: %s", path, e)
            raise UpstreamError(f"Quote provider unreachable: {e}") from e
        return r

    @staticmethod
    def _payload(r: httpx.Response) -> Dict[str, Any]:
        if r.status_code >= 400:
            logger.warning("brapi returned %s for %s: %s", r.status_code, r.url, r.text[:200])
            raise UpstreamError(f"Quote provider error ({r.status_code})")
        try:
            data = r.json()
        except ValueError as e:
            raise UpstreamError("Quote provider returned invalid JSON") from e
        if not isinstance(data, dict):
            raise UpstreamError("Quote provider returned an unexpected payload")
        return data

    async def search_tickers(self, query: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Autocomplete lookup; a blank query never hits the network."""
        if not query or not query.strip():
            return []
        async with self._client() as client:
            r = await self._get(client, "/api/quote/list", params={"search": query, "limit": limit})
        data = self._payload(r)
        stocks = data.get("stocks") or []
        return [
            {
                "symbol": s.get("stock"),
                "name": s.get("name"),
                "logo": s.get("logo"),
                "sector": s.get("sector"),
                "type": s.get("type"),
            }
            for s in stocks
        ]

    async def fetch_history(self, symbol: str, period: str) -> Dict[str, Any]:
        """
        Fetch quote plus historical closes for one ticker.

        Returns the first entry of brapi's ``results`` list. Raises
        TickerNotFoundError when brapi knows no such symbol and
        NoHistoricalDataError when the quote carries no price history.
        """
        symbol = symbol.upper()
        range_, interval = period_config_for(period)
        async with self._client() as client:
            r = await self._get(
                client, f"/api/quote/{symbol}", params={"range": range_, "interval": interval}
            )
        if r.status_code == 404:
            raise TickerNotFoundError(symbol)
        data = self._payload(r)
        results = data.get("results") or []
        if not results:
            raise TickerNotFoundError(symbol)
        result = results[0]
        if not result.get("historicalDataPrice"):
            raise NoHistoricalDataError(symbol)
        return result

    async def fetch_market_overview(self) -> Dict[str, Any]:
        """Index quote plus top gainers, losers and most traded stocks."""
        list_path = "/api/quote/list"
        base = {"limit": OVERVIEW_LIST_SIZE, "type": "stock"}
        async with self._client() as client:
            # Let every request settle before the client closes
            responses = await asyncio.gather(
                self._get(client, f"/api/quote/{INDEX_SYMBOL}"),
                self._get(client, list_path, params={**base, "sortBy": "change", "sortOrder": "desc"}),
                self._get(client, list_path, params={**base, "sortBy": "change", "sortOrder": "asc"}),
                self._get(client, list_path, params={**base, "sortBy": "volume", "sortOrder": "desc"}),
                return_exceptions=True,
            )
        for r in responses:
            if isinstance(r, BaseException):
                raise r
        index_r, gainers_r, losers_r, traded_r = responses
        index_data = self._payload(index_r)
        gainers = self._payload(gainers_r).get("stocks") or []
        losers = self._payload(losers_r).get("stocks") or []
        traded = self._payload(traded_r).get("stocks") or []

        indices = []
        index_results = index_data.get("results") or []
        if index_results:
            idx = index_results[0]
            indices.append({
                "symbol": idx.get("symbol"),
                "name": idx.get("shortName") or INDEX_FALLBACK_NAME,
                "price": idx.get("regularMarketPrice"),
                "change": idx.get("regularMarketChange"),
                "changePercent": idx.get("regularMarketChangePercent"),
            })

        top_gainers = [_format_stock(s) for s in gainers if s.get("change") is not None and s["change"] > 0]
        top_losers = [_format_stock(s) for s in losers if s.get("change") is not None and s["change"] < 0]
        most_traded = [_format_stock(s) for s in traded if (s.get("volume") or 0) > 0]
        total_volume = sum(s["volume"] or 0 for s in most_traded)

        return {
            "indices": indices,
            "topGainers": top_gainers,
            "topLosers": top_losers,
            "mostTraded": most_traded,
            "totalVolume": total_volume,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
