"""Fetch current prices, day range and volume via yfinance."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import yfinance as yf
from loguru import logger

from .errors import UpstreamFetchError
from .models import Quote

_SOURCE = "Yahoo Finance"


class YahooPriceSource:
    """Price/volume source backed by ``yfinance.Ticker(...).info``.

    Parameters
    ----------
    suffix:
        Exchange suffix appended to plain symbols, ``.NS`` for NSE.
    bse_suffix:
        Suffix appended to purely numeric BSE scrip codes such as ``532174``.
    ticker_factory:
        Callable returning a ``yfinance.Ticker``-like object; injectable for tests.
    """

    def __init__(
        self,
        suffix: str = ".NS",
        bse_suffix: str = ".BO",
        ticker_factory: Callable[[str], Any] = yf.Ticker,
    ) -> None:
        self._suffix = suffix
        self._bse_suffix = bse_suffix
        self._ticker_factory = ticker_factory

    def to_symbol(self, ticker: str) -> str:
        """Map a portfolio ticker to its yfinance symbol, e.g. ``HDFCBANK`` -> ``HDFCBANK.NS``."""
        ticker = ticker.strip().upper()
        if "." in ticker or "^" in ticker or "=" in ticker:
            return ticker
        if ticker.isdigit():
            return f"{ticker}{self._bse_suffix}"
        return f"{ticker}{self._suffix}"

    async def fetch(self, ticker: str) -> Quote:
        """Fetch the latest quote for *ticker*.

        The blocking yfinance call is offloaded to a worker thread.

        Raises
        ------
        UpstreamFetchError
            On network errors or when no usable price is returned.
        """
        symbol = self.to_symbol(ticker)
        logger.debug("Fetching Yahoo quote for '{}' as '{}'", ticker, symbol)
        try:
            info = await asyncio.to_thread(self._info, symbol)
        except Exception as exc:  # noqa: BLE001
            raise UpstreamFetchError(_SOURCE, ticker, str(exc)) from exc

        price = _number(info.get("regularMarketPrice")) or _number(info.get("currentPrice"))
        if price is None:
            raise UpstreamFetchError(_SOURCE, ticker, "no price in response")

        volume = _number(info.get("volume"))
        return Quote(
            current_price=price,
            day_high=_number(info.get("dayHigh")),
            day_low=_number(info.get("dayLow")),
            volume=int(volume) if volume is not None else None,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _info(self, symbol: str) -> dict[str, Any]:
        info = self._ticker_factory(symbol).info
        return info or {}


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number == number else None
