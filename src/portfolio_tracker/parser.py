"""Turn positional spreadsheet rows into a flat list of holdings.

The workbook has no reliable header row. Every row is classified on its own
(sector header, holding, or something to skip) and the rows are then folded
into ``(current_sector, holdings)`` in document order, so a holding is tagged
with the last sector header seen above it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import reduce
from numbers import Real
from typing import Any, Sequence

from loguru import logger

from .errors import ParseError, RowError
from .models import DEFAULT_SECTOR, UNKNOWN_TICKER, Holding

# ------------------------------------------------------------------
# Column layout
# ------------------------------------------------------------------

COL_INDEX = 0
COL_NAME = 1
COL_BUY_PRICE = 2
COL_QUANTITY = 3
COL_TICKER = 6
COL_CMP = 7

RawRow = Sequence[Any]


# ------------------------------------------------------------------
# Row variants
# ------------------------------------------------------------------


@dataclass(frozen=True)
class SectorRow:
    """A header row opening a new sector block."""

    name: str


@dataclass(frozen=True)
class HoldingRow:
    """A row describing one position, with its cells already coerced."""

    index: str
    name: str
    ticker: str
    quantity: float
    buy_price: float
    current_price: float


@dataclass(frozen=True)
class SkipRow:
    """Anything else: blank separators, totals, column headers, malformed rows."""

    reason: str
    warn: bool = False


ClassifiedRow = SectorRow | HoldingRow | SkipRow


@dataclass(frozen=True)
class _ParseState:
    current_sector: str
    holdings: tuple[Holding, ...]


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------


def classify_row(row: RawRow | None) -> ClassifiedRow:
    """Classify a single raw row.

    Precedence matters: the sector check runs before the skip check (a sector
    header has no price or quantity), and the skip check runs before the
    holding check.
    """
    if row is None or all(_is_blank(cell) for cell in row):
        return SkipRow("empty row")

    name = _cell(row, COL_NAME)
    ticker = _cell(row, COL_TICKER)

    if isinstance(name, str) and name and "Sector" in name and _is_blank(ticker):
        return SectorRow(name)

    if not isinstance(name, str) or not name.strip():
        return SkipRow("missing name")
    if "Total" in name:
        return SkipRow("summary row")
    if _is_blank(_cell(row, COL_BUY_PRICE)):
        return SkipRow("missing purchase price")
    if _is_blank(_cell(row, COL_QUANTITY)):
        return SkipRow("missing quantity")

    index = _to_number(_cell(row, COL_INDEX))
    if index is None:
        return SkipRow("no index number")

    buy_price = _to_number(_cell(row, COL_BUY_PRICE))
    quantity = _to_number(_cell(row, COL_QUANTITY))
    if buy_price is None or quantity is None or buy_price <= 0 or quantity <= 0:
        return SkipRow(f"invalid stock data for '{name}'", warn=True)

    return HoldingRow(
        index=_render(_cell(row, COL_INDEX)),
        name=name.strip(),
        ticker=UNKNOWN_TICKER if _is_blank(ticker) else _render(ticker),
        quantity=quantity,
        buy_price=buy_price,
        current_price=_to_number(_cell(row, COL_CMP)) or 0.0,
    )


def parse_rows(rows: Sequence[RawRow | None]) -> list[Holding]:
    """Parse raw workbook rows into holdings.

    Raises
    ------
    ParseError
        When *rows* is empty or when no row yields a valid holding.
    """
    if not rows:
        raise ParseError("No data found in the Excel file")

    initial = _ParseState(current_sector=DEFAULT_SECTOR, holdings=())
    final = reduce(_step, enumerate(rows, start=1), initial)

    if not final.holdings:
        raise ParseError("No valid stock data found in the Excel file")

    logger.info("Successfully processed {} stocks", len(final.holdings))
    return list(final.holdings)


# ------------------------------------------------------------------
# Private helpers
# ------------------------------------------------------------------


def _step(state: _ParseState, numbered_row: tuple[int, RawRow | None]) -> _ParseState:
    row_number, row = numbered_row
    try:
        classified = classify_row(row)
        if isinstance(classified, SectorRow):
            logger.debug("Row {}: sector '{}'", row_number, classified.name)
            return _ParseState(classified.name, state.holdings)
        if isinstance(classified, SkipRow):
            if classified.warn:
                logger.warning("Skipping {} at row {}", classified.reason, row_number)
            else:
                logger.trace("Row {} skipped: {}", row_number, classified.reason)
            return state
        holding = _to_holding(classified, state.current_sector)
    except Exception as exc:  # noqa: BLE001
        logger.error("Error processing {}", RowError(row_number, str(exc)))
        return state
    return _ParseState(state.current_sector, state.holdings + (holding,))


def _to_holding(row: HoldingRow, sector: str) -> Holding:
    return Holding(
        id=row.index,
        name=row.name,
        ticker=row.ticker,
        quantity=row.quantity,
        buy_price=row.buy_price,
        sector=sector,
        current_price=row.current_price,
    )


def _cell(row: RawRow, column: int) -> Any:
    return row[column] if column < len(row) else None


def _is_blank(value: Any) -> bool:
    """Mirror spreadsheet truthiness: missing, empty, zero and NaN cells are blank."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, Real):
        return value == 0 or math.isnan(value)
    return False


def _to_number(value: Any) -> float | None:
    """Coerce a native number or numeric string into a finite float."""
    if isinstance(value, bool):
        return None
    if isinstance(value, Real):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _render(value: Any) -> str:
    """Render a cell as text; integral floats lose their trailing ``.0``."""
    if isinstance(value, Real) and not isinstance(value, bool):
        number = float(value)
        if number.is_integer():
            return str(int(number))
        return str(number)
    return str(value).strip()
