"""Pydantic V2 data models for the portfolio tracker."""

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_TICKER = "UNKNOWN"
DEFAULT_SECTOR = "Uncategorized"


class Holding(BaseModel):
    """One portfolio position parsed from the uploaded workbook."""

    id: str = Field(..., description="Index cell of the source row, rendered as a string")
    name: str = Field(..., min_length=1, description="Display name of the instrument")
    ticker: str = Field(default=UNKNOWN_TICKER, description="Exchange symbol, e.g. HDFCBANK or 532174")
    quantity: float = Field(..., gt=0, description="Number of units held")
    buy_price: float = Field(..., gt=0, description="Average acquisition price per unit")
    sector: str | None = Field(default=DEFAULT_SECTOR, description="Sector header the row was listed under")

    # Market fields, refreshed asynchronously.
    current_price: float | None = Field(default=None, description="Last known market price (CMP)")
    pe_ratio: float | None = Field(default=None, description="Price/earnings ratio")
    last_earnings: str | None = Field(default=None, description="Latest reported quarter, e.g. 'Q2 2026'")

    # Derived fields, recomputed on every aggregation pass.
    investment: float | None = Field(default=None, description="quantity * buy_price")
    total_value: float | None = Field(default=None, description="Present value of the position")
    gain_loss_amount: float | None = Field(default=None, description="total_value - investment")
    gain_loss_percent: float | None = Field(default=None, description="Gain/loss relative to investment, in percent")
    portfolio_percent: float | None = Field(default=None, description="Share of the portfolio value, in percent")


class SectorRollup(BaseModel):
    """Aggregate of all holdings sharing a sector tag."""

    sector: str
    total_value: float = 0.0
    total_gain_loss: float = 0.0
    total_investment: float = 0.0
    holding_count: int = 0

    @property
    def gain_loss_percent(self) -> float:
        if self.total_investment == 0:
            return 0.0
        return self.total_gain_loss / self.total_investment * 100


class PortfolioSnapshot(BaseModel):
    """Derived view of the whole portfolio; recomputed whenever holdings change."""

    holdings: list[Holding] = Field(default_factory=list)
    sector_rollups: dict[str, SectorRollup] = Field(default_factory=dict)
    total_value: float = 0.0
    total_gain_loss: float = 0.0
    total_investment: float = 0.0

    @property
    def gain_loss_percent(self) -> float:
        if self.total_investment == 0:
            return 0.0
        return self.total_gain_loss / self.total_investment * 100


class Quote(BaseModel):
    """Market attributes for a single ticker, merged from all upstream sources."""

    model_config = ConfigDict(frozen=True)

    current_price: float | None = None
    day_high: float | None = None
    day_low: float | None = None
    volume: int | None = None
    pe_ratio: float | None = None
    last_earnings: str | None = None


class CacheStat(BaseModel):
    """Debug view of a single cache entry."""

    ticker: str
    age: float = Field(..., description="Seconds since the entry was fetched")
    is_valid: bool = Field(..., description="Whether the entry is still within its TTL")
