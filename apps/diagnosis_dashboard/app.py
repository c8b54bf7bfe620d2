from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pandas as pd
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from apps.diagnosis_dashboard.config import configure_logging, get_settings
from apps.diagnosis_dashboard.quotes import (
    BrapiClient,
    MissingTokenError,
    NoHistoricalDataError,
    QuoteGatewayError,
    TickerNotFoundError,
)
from apps.diagnosis_dashboard.schemas import (
    DiagnosisResponse,
    HealthResponse,
    MarketOverview,
    TickerSearchResponse,
)
from packages.diagnosis_toolkit import (
    DEFAULT_PERIOD,
    PERIOD_CONFIG,
    DiagnosisInput,
    generate_diagnosis,
    period_label_for,
)
from packages.metrics_engine import summarize

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("Quote API token configured: %s", "yes" if settings.brapi_token else "no")
    yield


app = FastAPI(title="Stock Diagnosis Dashboard", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


def get_quote_client() -> BrapiClient:
    settings = get_settings()
    return BrapiClient(
        token=settings.brapi_token,
        base_url=settings.brapi_base_url,
        timeout=settings.brapi_timeout,
    )


def _to_http_error(e: QuoteGatewayError, action: str) -> HTTPException:
    if isinstance(e, MissingTokenError):
        return HTTPException(500, "Quote API token not configured")
    if isinstance(e, (TickerNotFoundError, NoHistoricalDataError)):
        return HTTPException(400, str(e))
    return HTTPException(502, f"{action}: {e}")


def _closing_prices(symbol: str, history: list) -> pd.DataFrame:
    """Closing prices (and display timestamps) in time order, dropping null closes."""
    df = pd.DataFrame(history)
    if "close" not in df.columns:
        raise NoHistoricalDataError(symbol)
    if "date" not in df.columns:
        df["date"] = None
    df = df.dropna(subset=["close"])
    if df.empty:
        raise NoHistoricalDataError(symbol)
    return df[["date", "close"]]


@app.get("/", response_class=HTMLResponse)
async def home():
    """Single-page dashboard"""
    return HOME_PAGE


@app.get("/api/tickers/search", response_model=TickerSearchResponse)
async def search_tickers(
    q: str = Query("", description="Partial ticker or company name"),
    limit: int = Query(10, ge=1, le=50),
    client: BrapiClient = Depends(get_quote_client),
):
    """Ticker autocomplete"""
    if not q:
        return {"tickers": []}
    try:
        tickers = await client.search_tickers(q, limit=limit)
    except QuoteGatewayError as e:
        logger.error("Ticker search failed for %r: %s", q, e)
        raise _to_http_error(e, "Failed to search tickers")
    return {"tickers": tickers}


@app.get("/api/diagnosis", response_model=DiagnosisResponse)
async def diagnosis(
    symbol: str = Query(..., min_length=1, description="Stock ticker symbol"),
    period: str = Query(DEFAULT_PERIOD, description="Period code: 1d, 5d, 1mo or 3mo"),
    client: BrapiClient = Depends(get_quote_client),
):
    """Metrics plus written diagnosis for one ticker over one period"""
    if period not in PERIOD_CONFIG:
        raise HTTPException(400, f"Unsupported period '{period}'. Use one of: {', '.join(PERIOD_CONFIG)}")
    try:
        result = await client.fetch_history(symbol, period)
        closes = _closing_prices(symbol.upper(), result["historicalDataPrice"])
    except QuoteGatewayError as e:
        logger.error("Diagnosis failed for %s: %s", symbol, e)
        raise _to_http_error(e, "Failed to fetch quote")

    try:
        prices = [float(p) for p in closes["close"].tolist()]
        timestamps = [int(t) if t is not None and not pd.isna(t) else None for t in closes["date"].tolist()]
        metrics = summarize(prices)
        label = period_label_for(period)
        text = generate_diagnosis(DiagnosisInput(
            return_value=metrics.return_value,
            volatility_class=metrics.volatility_class,
            trend_class=metrics.trend_class,
            period_label=label,
        ))
    except Exception as e:
        logger.exception("Diagnosis computation failed for %s", symbol)
        raise HTTPException(500, f"Diagnosis failed: {str(e)}")

    return DiagnosisResponse(
        symbol=result.get("symbol") or symbol.upper(),
        short_name=result.get("shortName"),
        long_name=result.get("longName"),
        logo_url=result.get("logourl"),
        period=label,
        return_value=metrics.return_value,
        volatility=metrics.volatility_class,
        volatility_value=metrics.volatility,
        moving_average=metrics.moving_average,
        trend=metrics.trend_class,
        diagnosis=text,
        prices=prices,
        timestamps=timestamps,
        current_price=result.get("regularMarketPrice"),
        change_percent=result.get("regularMarketChangePercent"),
    )


@app.get("/api/market-overview", response_model=MarketOverview)
async def market_overview(client: BrapiClient = Depends(get_quote_client)):
    """Index level plus top gainers, losers and most traded stocks"""
    try:
        return await client.fetch_market_overview()
    except QuoteGatewayError as e:
        logger.error("Market overview failed: %s", e)
        raise _to_http_error(e, "Failed to fetch market data")


@app.get("/api/health", response_model=HealthResponse)
async def health():
    """Health check endpoint"""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


HOME_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Stock Diagnosis</title>
    <style>
        body { font-family: Arial, sans-serif; max-width: 980px; margin: 0 auto; padding: 20px; }
        .form-group { margin: 20px 0; display: flex; gap: 8px; position: relative; }
        input[type="text"] { padding: 10px; font-size: 16px; width: 260px; }
        select { padding: 10px; font-size: 14px; }
        button { padding: 10px 16px; font-size: 14px; background: #007cba; color: white; border: none; cursor: pointer; border-radius: 4px; }
        .muted { color: #666; }
        .card { background: #f7f9fb; border: 1px solid #e3e8ef; border-radius: 8px; padding: 16px; margin-bottom: 16px; }
        .grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 12px; }
        .pos { color: #0b6b2e; }
        .neg { color: #8a0a0a; }
        #suggestions { position: absolute; top: 44px; left: 0; width: 360px; background: #fff; border: 1px solid #e3e8ef; border-radius: 4px; z-index: 10; }
        #suggestions div { padding: 6px 10px; cursor: pointer; font-size: 13px; }
        #suggestions div:hover { background: #eef2f7; }
        #diagnosisText { white-space: pre-wrap; line-height: 1.5; }
        table { width: 100%; border-collapse: collapse; }
        td { border-bottom: 1px solid #eee; padding: 4px; font-size: 13px; }
    </style>
</head>
<body>
    <h1>Stock Diagnosis</h1>
    <div class="form-group">
        <input type="text" id="ticker" placeholder="Ticker (e.g., PETR4)" autocomplete="off" />
        <select id="period">
            <option value="1d">1 day</option>
            <option value="5d">5 days</option>
            <option value="1mo" selected>1 month</option>
            <option value="3mo">3 months</option>
        </select>
        <button onclick="analyze()">Analyze</button>
        <div id="suggestions"></div>
    </div>

    <div id="result"></div>
    <div id="overview" class="card muted">Loading market overview...</div>

    <script>
        let debounceTimer = null;
        function esc(v) {
            const entities = {'&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;'};
            return String(v == null ? '' : v).replace(/[&<>"']/g, c => entities[c]);
        }
        const input = document.getElementById('ticker');
        input.addEventListener('input', () => {
            clearTimeout(debounceTimer);
            debounceTimer = setTimeout(suggest, 300);
        });
        input.addEventListener('keypress', e => { if (e.key === 'Enter') analyze(); });

        async function suggest() {
            const q = input.value.trim();
            const box = document.getElementById('suggestions');
            if (!q) { box.innerHTML = ''; return; }
            try {
                const r = await fetch(`/api/tickers/search?q=${encodeURIComponent(q)}&limit=8`);
                const data = r.ok ? await r.json() : {tickers: []};
                box.innerHTML = data.tickers.map(t =>
                    `<div data-symbol="${esc(t.symbol)}" onclick="pick(this.dataset.symbol)"><strong>${esc(t.symbol)}</strong> <span class="muted">${esc(t.name)}</span></div>`
                ).join('');
            } catch (e) { box.innerHTML = ''; }
        }
        function pick(symbol) {
            input.value = symbol;
            document.getElementById('suggestions').innerHTML = '';
            analyze();
        }
        function pct(x) { return `${x >= 0 ? '+' : ''}${(x * 100).toFixed(1)}%`; }
        function sparkline(prices) {
            if (!prices || prices.length < 2) return '';
            const w = 900, h = 160;
            const lo = Math.min(...prices), hi = Math.max(...prices), span = (hi - lo) || 1;
            const pts = prices.map((p, i) => `${(i / (prices.length - 1) * w).toFixed(1)},${(h - (p - lo) / span * h).toFixed(1)}`).join(' ');
            const color = prices[prices.length - 1] >= prices[0] ? '#34c759' : '#ff3b30';
            return `<svg viewBox="0 0 ${w} ${h}" width="100%" height="${h}"><polyline fill="none" stroke="${color}" stroke-width="2" points="${pts}"/></svg>`;
        }
        async function analyze() {
            const symbol = input.value.trim().toUpperCase();
            if (!symbol) return;
            const period = document.getElementById('period').value;
            const out = document.getElementById('result');
            document.getElementById('suggestions').innerHTML = '';
            out.innerHTML = 'Analyzing...';
            try {
                const r = await fetch(`/api/diagnosis?symbol=${encodeURIComponent(symbol)}&period=${period}`);
                const data = await r.json();
                if (!r.ok) { out.innerHTML = `<div class="card neg">Error: ${esc(data.detail)}</div>`; return; }
                out.innerHTML = `
                <div class="card">
                    <h2>${esc(data.symbol)} <span class="muted">${esc(data.longName || data.shortName)}</span></h2>
                    <div class="grid">
                        <div><div class="muted">Return (${esc(data.period)})</div><strong class="${data['return'] >= 0 ? 'pos' : 'neg'}">${pct(data['return'])}</strong></div>
                        <div><div class="muted">Volatility</div><strong>${data.volatility}</strong></div>
                        <div><div class="muted">Trend</div><strong>${data.trend}</strong></div>
                        <div><div class="muted">Current price</div><strong>${data.currentPrice != null ? data.currentPrice.toFixed(2) : '-'}</strong></div>
                    </div>
                    ${sparkline(data.prices)}
                </div>
                <div class="card"><div id="diagnosisText"></div></div>`;
                document.getElementById('diagnosisText').textContent = data.diagnosis;
            } catch (e) {
                out.innerHTML = `<div class="card neg">Error: ${esc(e.message)}</div>`;
            }
        }
        function stockRows(list) {
            return `<table>${list.map(s => `<tr><td>${esc(s.symbol)}</td><td>${s.price != null ? s.price.toFixed(2) : '-'}</td><td class="${(s.change || 0) >= 0 ? 'pos' : 'neg'}">${(s.change || 0).toFixed(2)}%</td></tr>`).join('')}</table>`;
        }
        async function loadOverview() {
            const box = document.getElementById('overview');
            try {
                const r = await fetch('/api/market-overview');
                const data = await r.json();
                if (!r.ok) { box.innerHTML = `Market overview unavailable: ${esc(data.detail)}`; return; }
                const idx = data.indices.map(i => `<strong>${esc(i.name)}</strong> ${i.price != null ? i.price.toFixed(0) : '-'} <span class="${(i.changePercent || 0) >= 0 ? 'pos' : 'neg'}">${(i.changePercent || 0).toFixed(2)}%</span>`).join(' | ');
                box.classList.remove('muted');
                box.innerHTML = `
                    <h3>Market overview</h3>
                    <div>${idx}</div>
                    <div class="grid" style="margin-top:12px;">
                        <div><div class="muted">Top gainers</div>${stockRows(data.topGainers)}</div>
                        <div><div class="muted">Top losers</div>${stockRows(data.topLosers)}</div>
                        <div><div class="muted">Most traded</div>${stockRows(data.mostTraded)}</div>
                    </div>
                    <div class="muted" style="margin-top:8px;">Updated ${new Date(data.updatedAt).toLocaleString()}</div>`;
            } catch (e) {
                box.innerHTML = `Market overview unavailable: ${esc(e.message)}`;
            }
        }
        loadOverview();
    </script>
</body>
</html>
"""


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)
