"""Exception hierarchy for the portfolio tracker."""


class PortfolioError(Exception):
    """Base class for all portfolio tracker errors."""


class InputError(PortfolioError, ValueError):
    """The uploaded file cannot be turned into a portfolio."""


class UnsupportedFileTypeError(InputError):
    """Raised when the uploaded file is not an Excel workbook."""

    def __init__(self, filename: str) -> None:
        super().__init__(
            f"Invalid file type '{filename}'. Please upload an Excel file (.xlsx or .xls)"
        )
        self.filename = filename


class ParseError(InputError):
    """Raised when a workbook yields no rows or no valid holdings."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to parse Excel file: {reason}")
        self.reason = reason


class RowError(PortfolioError):
    """A single spreadsheet row could not be turned into a holding."""

    def __init__(self, row_number: int, reason: str) -> None:
        super().__init__(f"row {row_number}: {reason}")
        self.row_number = row_number
        self.reason = reason


class UpstreamFetchError(PortfolioError):
    """A market-data source was unreachable or returned unusable content."""

    def __init__(self, source: str, ticker: str, reason: str) -> None:
        super().__init__(f"{source} lookup for '{ticker}' failed: {reason}")
        self.source = source
        self.ticker = ticker


class RefreshRoundError(PortfolioError):
    """An unexpected failure while refreshing market data for the portfolio."""
