import asyncio
import io
from typing import Any

import pandas as pd
import pytest

from portfolio_tracker.models import Holding, Quote

# Positional layout: No, Particulars, Purchase Price, Qty, Investment, Portfolio (%),
# NSE/BSE, CMP, Present value, Gain/Loss, Gain/Loss (%)
SAMPLE_ROWS: list[list[Any]] = [
    ["No", "Particulars", "Purchase Price", "Qty", "Investment", "Portfolio (%)",
     "NSE/BSE", "CMP", "Present value", "Gain/Loss", "Gain/Loss\n(%)"],
    [None, "Financial Sector", None, None, 328450.0, 0.2128, None, None, 386328.7, 57878.7, 0.1762],
    [1.0, "HDFC Bank", 1490.0, 50.0, 74500.0, 0.0482, "HDFCBANK", 1700.15, 85007.5, 10507.5, 0.1410],
    [2.0, "Bajaj Finance", 6466.0, 15.0, 96990.0, 0.0628, "BAJFINANCE", 8419.6, 126294.0, 29304.0, 0.3021],
    [3.0, "ICICI Bank", 780.0, 84.0, 65520.0, 0.0424, "532174", 1215.5, 102102.0, 36582.0, 0.5583],
    [None, "Tech Sector", None, None, 337820.0, 0.2189, None, None, 319697.3, -18122.7, -0.0536],
    [1.0, "Affle India", 1151.0, 50.0, 57550.0, 0.0372, "AFFLE", 1459.6, 72980.0, 15430.0, 0.2681],
    [2.0, "LTI Mindtree", 4775.0, 16.0, 76400.0, 0.0495, "LTIM", 4793.8, 76700.8, 300.8, 0.0039],
    [3.0, "KPIT Tech", 672.0, 61.0, 40992.0, 0.0265, "542651", 1293.1, 78879.1, 37887.1, 0.9242],
    [None, "Consumer", None, None, 263565.0, 0.1708, None, None, 277958.7, 14393.7, 0.0546],
    [1.0, "Dmart", 3777.0, 27.0, 101979.0, 0.0660, "DMART", 3451.1, 93179.7, -8799.3, -0.0862],
]


def workbook_bytes(rows: list[list[Any]]) -> bytes:
    buffer = io.BytesIO()
    pd.DataFrame(rows).to_excel(buffer, header=False, index=False, engine="openpyxl")
    return buffer.getvalue()


@pytest.fixture
def sample_rows() -> list[list[Any]]:
    return [list(row) for row in SAMPLE_ROWS]


@pytest.fixture
def sample_workbook() -> bytes:
    return workbook_bytes(SAMPLE_ROWS)


def make_holding(
    id: str = "1",
    name: str = "HDFC Bank",
    ticker: str = "HDFCBANK",
    quantity: float = 50,
    buy_price: float = 1490,
    sector: str | None = "Financial Sector",
    current_price: float | None = None,
) -> Holding:
    return Holding(
        id=id,
        name=name,
        ticker=ticker,
        quantity=quantity,
        buy_price=buy_price,
        sector=sector,
        current_price=current_price,
    )


class FakeQuoteProvider:
    """Quote provider returning canned quotes and recording requested tickers."""

    def __init__(self, quotes: dict[str, Any], gate: asyncio.Event | None = None):
        self.quotes = quotes
        self.gate = gate
        self.requested: list[str] = []

    async def get_quote(self, ticker: str) -> Quote:
        self.requested.append(ticker)
        if self.gate is not None:
            await self.gate.wait()
        value = self.quotes[ticker]
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def make_workbook():
    return workbook_bytes


@pytest.fixture(name="make_holding")
def make_holding_fixture():
    return make_holding


@pytest.fixture
def quote_provider():
    return FakeQuoteProvider
