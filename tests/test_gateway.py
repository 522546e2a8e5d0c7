import random
from datetime import date

import httpx
import pytest

from portfolio_tracker.errors import UpstreamFetchError
from portfolio_tracker.gateway import MarketDataGateway
from portfolio_tracker.metrics_fetcher import GoogleFinanceMetricsSource, parse_metrics
from portfolio_tracker.models import Quote
from portfolio_tracker.price_fetcher import YahooPriceSource
from portfolio_tracker.synthetic import SyntheticQuotes

QUOTE_PAGE = """
<html><body>
  <div class="gyFHrc"><div class="mfs7Fc">Previous close</div><div class="P6K39c">1,690.00</div></div>
  <div class="gyFHrc"><div class="mfs7Fc">P/E ratio</div><div class="P6K39c">1,018.25</div></div>
  <div class="gyFHrc"><div class="mfs7Fc">Earnings</div><div class="P6K39c">Q2 2026</div></div>
</body></html>
"""


class StaticSource:
    def __init__(self, quote=None, error=None):
        self.quote = quote
        self.error = error
        self.closed = False

    async def fetch(self, ticker):
        if self.error is not None:
            raise self.error
        return self.quote

    async def aclose(self):
        self.closed = True


class FakeTicker:
    def __init__(self, info):
        self.info = info


def synthetic(seed=7):
    return SyntheticQuotes(rng=random.Random(seed), today=lambda: date(2026, 10, 19))


# ------------------------------------------------------------------
# Gateway
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sources_are_merged_and_metrics_win():
    gateway = MarketDataGateway(
        price_source=StaticSource(Quote(current_price=1700.15, day_high=1710.0, volume=1200, pe_ratio=1.0)),
        metrics_source=StaticSource(Quote(pe_ratio=18.4, last_earnings="Q2 2026")),
        synthetic=synthetic(),
    )

    quote = await gateway.fetch_quote("HDFCBANK")

    assert quote == Quote(
        current_price=1700.15,
        day_high=1710.0,
        volume=1200,
        pe_ratio=18.4,
        last_earnings="Q2 2026",
    )


@pytest.mark.asyncio
async def test_price_failure_falls_back_to_synthetic_price():
    gateway = MarketDataGateway(
        price_source=StaticSource(error=UpstreamFetchError("Yahoo Finance", "X", "boom")),
        metrics_source=StaticSource(Quote(pe_ratio=18.4, last_earnings="Q2 2026")),
        synthetic=synthetic(),
    )

    quote = await gateway.fetch_quote("X")

    assert 500 <= quote.current_price <= 2500
    assert quote.day_high == pytest.approx(quote.current_price * 1.02, abs=0.02)
    assert quote.day_low == pytest.approx(quote.current_price * 0.98, abs=0.02)
    assert 10_000 <= quote.volume < 1_010_000
    assert quote.pe_ratio == 18.4


@pytest.mark.asyncio
async def test_metrics_failure_falls_back_to_synthetic_metrics():
    gateway = MarketDataGateway(
        price_source=StaticSource(Quote(current_price=100.0)),
        metrics_source=StaticSource(error=RuntimeError("markup changed")),
        synthetic=synthetic(),
    )

    quote = await gateway.fetch_quote("X")

    assert quote.current_price == 100.0
    assert 10 <= quote.pe_ratio <= 50
    assert quote.last_earnings in {"Q1 2026", "Q2 2026", "Q3 2026", "Q4 2026"}


@pytest.mark.asyncio
async def test_gateway_never_raises_when_both_sources_fail():
    gateway = MarketDataGateway(
        price_source=StaticSource(error=ConnectionError("down")),
        metrics_source=StaticSource(error=ConnectionError("down")),
        synthetic=synthetic(),
    )

    quote = await gateway.fetch_quote("X")

    assert quote.current_price is not None
    assert quote.pe_ratio is not None


@pytest.mark.asyncio
async def test_gateway_closes_sources():
    price, metrics = StaticSource(), StaticSource()
    await MarketDataGateway(price, metrics).aclose()
    assert price.closed and metrics.closed


def test_synthetic_quotes_are_reproducible_with_a_seed():
    assert synthetic(3).price() == synthetic(3).price()
    assert synthetic(3).metrics() == synthetic(3).metrics()


def test_synthetic_rejects_inverted_range():
    with pytest.raises(ValueError):
        SyntheticQuotes(price_min=10, price_max=5)


# ------------------------------------------------------------------
# Yahoo price source
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "ticker, symbol",
    [("HDFCBANK", "HDFCBANK.NS"), ("532174", "532174.BO"), ("AAPL.US", "AAPL.US"), ("^NSEI", "^NSEI")],
)
def test_yahoo_symbol_mapping(ticker, symbol):
    assert YahooPriceSource().to_symbol(ticker) == symbol


@pytest.mark.asyncio
async def test_yahoo_source_reads_info():
    seen = []

    def factory(symbol):
        seen.append(symbol)
        return FakeTicker(
            {"regularMarketPrice": 1700.15, "dayHigh": 1712.0, "dayLow": 1688.5, "volume": 4_500_000}
        )

    quote = await YahooPriceSource(ticker_factory=factory).fetch("HDFCBANK")

    assert seen == ["HDFCBANK.NS"]
    assert quote == Quote(current_price=1700.15, day_high=1712.0, day_low=1688.5, volume=4_500_000)


@pytest.mark.asyncio
async def test_yahoo_source_without_price_raises():
    source = YahooPriceSource(ticker_factory=lambda symbol: FakeTicker({"dayHigh": 10}))
    with pytest.raises(UpstreamFetchError, match="no price"):
        await source.fetch("NOPE")


@pytest.mark.asyncio
async def test_yahoo_source_wraps_errors():
    def factory(symbol):
        raise ConnectionError("rate limited")

    with pytest.raises(UpstreamFetchError, match="rate limited"):
        await YahooPriceSource(ticker_factory=factory).fetch("HDFCBANK")


# ------------------------------------------------------------------
# Google Finance metrics source
# ------------------------------------------------------------------


def test_parse_metrics():
    assert parse_metrics(QUOTE_PAGE) == (1018.25, "Q2 2026")
    assert parse_metrics("<html></html>") == (None, None)


@pytest.mark.asyncio
async def test_metrics_source_fetches_quote_page():
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(200, text=QUOTE_PAGE)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        source = GoogleFinanceMetricsSource(client=client)
        quote = await source.fetch("HDFCBANK")

    assert seen == ["/finance/quote/HDFCBANK:NSE"]
    assert quote == Quote(pe_ratio=1018.25, last_earnings="Q2 2026")


def test_metrics_source_keeps_explicit_exchange():
    assert GoogleFinanceMetricsSource().quote_url("AAPL:NASDAQ").endswith("/quote/AAPL:NASDAQ")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [httpx.Response(404, text="not found"), httpx.Response(200, text="<html>redesigned</html>")],
)
async def test_metrics_source_errors(response):
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)) as client:
        with pytest.raises(UpstreamFetchError):
            await GoogleFinanceMetricsSource(client=client).fetch("HDFCBANK")
