"""Read uploaded Excel workbooks into positional rows using pandas."""

from __future__ import annotations

import io
from typing import Any

import pandas as pd
from loguru import logger

from .errors import ParseError, UnsupportedFileTypeError
from .models import Holding
from .parser import parse_rows

SUPPORTED_EXTENSIONS: tuple[str, ...] = (".xlsx", ".xls")

# pandas picks the reader from the engine, not from the (absent) file name.
_ENGINES: dict[str, str] = {".xlsx": "openpyxl", ".xls": "xlrd"}


def ensure_supported_file(filename: str) -> str:
    """Return the lower-cased extension of *filename* or raise ``UnsupportedFileTypeError``."""
    lowered = filename.lower()
    for extension in SUPPORTED_EXTENSIONS:
        if lowered.endswith(extension):
            return extension
    raise UnsupportedFileTypeError(filename)


def read_workbook_rows(data: bytes, filename: str) -> list[list[Any]]:
    """Return the first worksheet of the workbook in *data* as header-free rows.

    Empty cells are returned as ``None`` and no column names are inferred;
    callers address cells purely by position.
    """
    extension = ensure_supported_file(filename)
    logger.debug("Reading workbook '{}' ({} bytes)", filename, len(data))
    try:
        frame = pd.read_excel(
            io.BytesIO(data),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=_ENGINES[extension],
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not read workbook '{}': {}", filename, exc)
        raise ParseError(str(exc)) from exc

    if frame.empty:
        raise ParseError("No data found in the Excel file")

    frame = frame.astype(object).where(frame.notna(), None)
    rows: list[list[Any]] = frame.values.tolist()
    logger.debug("Read {} row(s) from '{}'", len(rows), filename)
    return rows


def load_holdings(data: bytes, filename: str) -> list[Holding]:
    """Validate, read and parse an uploaded workbook in one step."""
    return parse_rows(read_workbook_rows(data, filename))
