import asyncio

import httpx
import pytest

from apps.diagnosis_dashboard.quotes import (
    BrapiClient,
    MissingTokenError,
    NoHistoricalDataError,
    TickerNotFoundError,
    UpstreamError,
)


def make_client(handler, token="test-token"):
    return BrapiClient(token=token, base_url="https://brapi.test", transport=httpx.MockTransport(handler))


def test_search_tickers_maps_fields_and_sends_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"stocks": [
            {"stock": "PETR4", "name": "Petrobras PN", "logo": "https://x/petr4.svg", "sector": "Energy", "type": "stock", "close": 37.1},
            {"stock": "PETR3", "name": "Petrobras ON", "logo": None, "sector": "Energy", "type": "stock"},
        ]})

    tickers = asyncio.run(make_client(handler).search_tickers("PET", limit=8))
    assert seen["auth"] == "Bearer test-token"
    assert seen["path"] == "/api/quote/list"
    assert seen["params"] == {"search": "PET", "limit": "8"}
    assert [t["symbol"] for t in tickers] == ["PETR4", "PETR3"]
    assert set(tickers[0].keys()) == {"symbol", "name", "logo", "sector", "type"}


def test_search_tickers_empty_results_and_blank_query():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"stocks": []})

    client = make_client(handler)
    assert asyncio.run(client.search_tickers("ZZZ")) == []
    assert asyncio.run(client.search_tickers("   ")) == []
    # Blank query never reaches the network
    assert len(calls) == 1


def test_missing_token_raises_before_any_request():
    def handler(request):
        raise AssertionError("no request expected")

    client = make_client(handler, token=None)
    with pytest.raises(MissingTokenError):
        asyncio.run(client.fetch_history("PETR4", "1mo"))
    with pytest.raises(MissingTokenError):
        asyncio.run(client.fetch_market_overview())


def test_fetch_history_uses_period_config():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"results": [{
            "symbol": "VALE3",
            "historicalDataPrice": [{"date": 1700000000, "close": 60.0}, {"date": 1700086400, "close": 61.5}],
        }]})

    result = asyncio.run(make_client(handler).fetch_history("vale3", "1d"))
    assert seen["path"] == "/api/quote/VALE3"
    assert seen["params"] == {"range": "1d", "interval": "1h"}
    assert result["symbol"] == "VALE3"
    assert len(result["historicalDataPrice"]) == 2


def test_fetch_history_unknown_ticker():
    client = make_client(lambda request: httpx.Response(200, json={"results": []}))
    with pytest.raises(TickerNotFoundError) as exc:
        asyncio.run(client.fetch_history("nope", "1mo"))
    assert exc.value.symbol == "NOPE"

    client = make_client(lambda request: httpx.Response(404, json={"error": True, "message": "not found"}))
    with pytest.raises(TickerNotFoundError):
        asyncio.run(client.fetch_history("NOPE", "1mo"))


def test_fetch_history_without_prices():
    client = make_client(lambda request: httpx.Response(200, json={"results": [{"symbol": "ABCD3", "historicalDataPrice": []}]}))
    with pytest.raises(NoHistoricalDataError):
        asyncio.run(client.fetch_history("ABCD3", "1mo"))


def test_upstream_failures_are_wrapped():
    client = make_client(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(UpstreamError):
        asyncio.run(client.search_tickers("PET"))

    client = make_client(lambda request: httpx.Response(200, text="<html>not json</html>"))
    with pytest.raises(UpstreamError):
        asyncio.run(client.fetch_history("PETR4", "1mo"))

    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError):
        asyncio.run(make_client(unreachable).search_tickers("PET"))


def test_market_overview_filters_and_totals():
    def handler(request):
        if request.url.path.endswith("BVSP"):
            return httpx.Response(200, json={"results": [{
                "symbol": "^BVSP", "shortName": None, "regularMarketPrice": 128000.5,
                "regularMarketChange": 512.0, "regularMarketChangePercent": 0.4,
            }]})
        params = request.url.params
        assert params["type"] == "stock" and params["limit"] == "5"
        if params["sortBy"] == "change" and params["sortOrder"] == "desc":
            stocks = [
                {"stock": "AAA3", "change": 5.2, "close": 10.0, "volume": 100},
                {"stock": "BBB3", "change": None, "close": 11.0, "volume": 100},
                {"stock": "CCC3", "change": 0, "close": 12.0, "volume": 100},
            ]
        elif params["sortBy"] == "change":
            stocks = [
                {"stock": "DDD3", "change": -3.1, "close": 9.0, "volume": 50},
                {"stock": "EEE3", "change": 1.0, "close": 9.5, "volume": 50},
            ]
        else:
            stocks = [
                {"stock": "FFF3", "change": 0.5, "close": 20.0, "volume": 1000},
                {"stock": "GGG3", "change": -0.5, "close": 21.0, "volume": 250},
                {"stock": "HHH3", "change": 0.1, "close": 22.0, "volume": 0},
            ]
        return httpx.Response(200, json={"stocks": stocks})

    data = asyncio.run(make_client(handler).fetch_market_overview())
    assert data["indices"] == [{
        "symbol": "^BVSP", "name": "IBOVESPA", "price": 128000.5,
        "change": 512.0, "changePercent": 0.4,
    }]
    assert [s["symbol"] for s in data["topGainers"]] == ["AAA3"]
    assert [s["symbol"] for s in data["topLosers"]] == ["DDD3"]
    assert [s["symbol"] for s in data["mostTraded"]] == ["FFF3", "GGG3"]
    assert data["totalVolume"] == 1250
    assert data["topGainers"][0]["price"] == 10.0
    assert "updatedAt" in data


def test_market_overview_waits_for_all_requests_before_failing():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path.endswith("BVSP"):
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, json={"stocks": []})

    with pytest.raises(UpstreamError):
        asyncio.run(make_client(handler).fetch_market_overview())
    assert len(calls) == 4
