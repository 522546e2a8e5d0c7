"""A single market-data refresh round over a list of holdings."""

from __future__ import annotations

import asyncio
from typing import Protocol, Sequence

from loguru import logger

from .models import UNKNOWN_TICKER, Holding, Quote


class QuoteProvider(Protocol):
    async def get_quote(self, ticker: str) -> Quote: ...


async def fetch_quotes(tickers: Sequence[str], provider: QuoteProvider) -> dict[str, Quote]:
    """Fetch quotes for *tickers* concurrently; tickers whose fetch failed are left out."""
    results = await asyncio.gather(
        *(provider.get_quote(ticker) for ticker in tickers),
        return_exceptions=True,
    )
    quotes: dict[str, Quote] = {}
    for ticker, result in zip(tickers, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.error("Error fetching data for '{}': {}", ticker, result)
            continue
        quotes[ticker] = result
    return quotes


def merge_quote(holding: Holding, quote: Quote) -> Holding:
    """Apply *quote* to *holding*, keeping previous values where the quote is empty."""
    return holding.model_copy(
        update={
            "current_price": quote.current_price or holding.current_price or holding.buy_price,
            "pe_ratio": quote.pe_ratio or holding.pe_ratio or 0.0,
            "last_earnings": quote.last_earnings or holding.last_earnings or "N/A",
        }
    )


async def refresh_holdings(holdings: Sequence[Holding], provider: QuoteProvider) -> list[Holding]:
    """Return *holdings* with market fields refreshed from *provider*.

    Each distinct ticker is requested once. Holdings without a known ticker,
    or whose ticker could not be fetched, are returned unchanged.
    """
    tickers = list(dict.fromkeys(h.ticker for h in holdings if h.ticker and h.ticker != UNKNOWN_TICKER))
    if not tickers:
        return list(holdings)

    logger.debug("Refreshing {} ticker(s)", len(tickers))
    quotes = await fetch_quotes(tickers, provider)
    return [merge_quote(h, quotes[h.ticker]) if h.ticker in quotes else h for h in holdings]
