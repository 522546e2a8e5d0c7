"""Per-ticker market data from two independent upstreams, with synthetic fallback."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol

from loguru import logger

from .config import Settings
from .metrics_fetcher import GoogleFinanceMetricsSource
from .models import Quote
from .price_fetcher import YahooPriceSource
from .synthetic import SyntheticQuotes


class QuoteSource(Protocol):
    async def fetch(self, ticker: str) -> Quote: ...


class MarketDataGateway:
    """Merge a price source and a valuation-metrics source into one ``Quote``.

    Each source is queried independently. Any failure of a source is logged and
    replaced with simulated data, so ``fetch_quote`` always returns a populated
    quote and never raises for upstream problems.
    """

    def __init__(
        self,
        price_source: QuoteSource,
        metrics_source: QuoteSource,
        synthetic: SyntheticQuotes | None = None,
    ) -> None:
        self._price_source = price_source
        self._metrics_source = metrics_source
        self._synthetic = synthetic or SyntheticQuotes()

    @classmethod
    def from_settings(cls, settings: Settings) -> "MarketDataGateway":
        return cls(
            price_source=YahooPriceSource(
                suffix=settings.yahoo_suffix,
                bse_suffix=settings.bse_suffix,
            ),
            metrics_source=GoogleFinanceMetricsSource(
                exchange=settings.google_exchange,
                timeout=settings.http_timeout_seconds,
            ),
            synthetic=SyntheticQuotes(
                price_min=settings.synthetic_price_min,
                price_max=settings.synthetic_price_max,
            ),
        )

    async def fetch_quote(self, ticker: str) -> Quote:
        """Return the merged quote for *ticker*; metrics fields win on overlap."""
        price, metrics = await asyncio.gather(
            self._fetch_or_fallback("price", self._price_source, ticker, self._synthetic.price),
            self._fetch_or_fallback("metrics", self._metrics_source, ticker, self._synthetic.metrics),
        )
        merged = {
            **price.model_dump(exclude_none=True),
            **metrics.model_dump(exclude_none=True),
        }
        return Quote(**merged)

    async def aclose(self) -> None:
        for source in (self._price_source, self._metrics_source):
            close: Callable[[], Awaitable[None]] | None = getattr(source, "aclose", None)
            if close is not None:
                await close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _fetch_or_fallback(
        self,
        kind: str,
        source: QuoteSource,
        ticker: str,
        fallback: Callable[[], Quote],
    ) -> Quote:
        try:
            return await source.fetch(ticker)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Falling back to simulated {} data for '{}': {}", kind, ticker, exc)
            return fallback()
