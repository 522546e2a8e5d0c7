"""Scrape valuation metrics (P/E ratio, last earnings) from Google Finance quote pages."""

from __future__ import annotations

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from .errors import UpstreamFetchError
from .models import Quote

_SOURCE = "Google Finance"
_BASE_URL = "https://www.google.com/finance/quote"
_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/123.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml",
}

# CSS classes of the "About" key/value table on the quote page.
_ROW_CLASS = "gyFHrc"
_LABEL_CLASS = "mfs7Fc"
_VALUE_CLASS = "P6K39c"


class GoogleFinanceMetricsSource:
    """Valuation-metrics source backed by the public Google Finance quote page.

    Parameters
    ----------
    exchange:
        Exchange code appended to plain tickers, e.g. ``NSE`` -> ``HDFCBANK:NSE``.
    client:
        Optional ``httpx.AsyncClient``; one is created on first use otherwise.
    timeout:
        Request timeout in seconds for the owned client.
    """

    def __init__(
        self,
        exchange: str = "NSE",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._exchange = exchange
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    def quote_url(self, ticker: str) -> str:
        symbol = ticker if ":" in ticker else f"{ticker}:{self._exchange}"
        return f"{_BASE_URL}/{symbol}"

    async def fetch(self, ticker: str) -> Quote:
        """Fetch P/E ratio and last earnings for *ticker*.

        Raises
        ------
        UpstreamFetchError
            On network errors, non-2xx responses, or when the page no longer
            contains the expected markup.
        """
        url = self.quote_url(ticker)
        logger.debug("Fetching Google Finance page {}", url)
        try:
            response = await self._get_client().get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(_SOURCE, ticker, str(exc)) from exc

        pe_ratio, last_earnings = parse_metrics(response.text)
        if pe_ratio is None and last_earnings is None:
            raise UpstreamFetchError(_SOURCE, ticker, "no metrics found in page markup")
        return Quote(pe_ratio=pe_ratio, last_earnings=last_earnings)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=_HEADERS,
                timeout=self._timeout,
                follow_redirects=True,
            )
        return self._client


def parse_metrics(html: str) -> tuple[float | None, str | None]:
    """Extract ``(pe_ratio, last_earnings)`` from a quote page; missing values are ``None``."""
    soup = BeautifulSoup(html, "html.parser")

    pe_ratio: float | None = None
    for row in soup.select(f".{_ROW_CLASS}"):
        label = row.select_one(f".{_LABEL_CLASS}")
        value = row.select_one(f".{_VALUE_CLASS}")
        if label is None or value is None or "P/E ratio" not in label.get_text():
            continue
        try:
            pe_ratio = float(value.get_text(strip=True).replace(",", ""))
        except ValueError:
            logger.debug("Unparseable P/E value '{}'", value.get_text(strip=True))

    last_earnings: str | None = None
    for element in soup.select(f".{_VALUE_CLASS}"):
        text = element.get_text(strip=True)
        if "Q" in text and ("202" in text or "/" in text):
            last_earnings = text

    return pe_ratio, last_earnings
