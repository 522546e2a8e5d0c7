"""Derived per-holding metrics and sector/portfolio rollups."""

from __future__ import annotations

from typing import Iterable

from .models import Holding, PortfolioSnapshot, SectorRollup


def effective_price(holding: Holding) -> float:
    """Current price when it is a positive number, otherwise the buy price.

    Right after parsing no market fetch has succeeded yet, so value equals
    acquisition cost instead of zero.
    """
    current = holding.current_price or 0.0
    if current > 0:
        return current
    return holding.buy_price or 0.0


def derive_holding(holding: Holding) -> Holding:
    """Return a copy of *holding* with value and gain/loss fields recomputed."""
    quantity = holding.quantity or 0.0
    investment = quantity * (holding.buy_price or 0.0)
    total_value = quantity * effective_price(holding)
    gain_loss = total_value - investment
    return holding.model_copy(
        update={
            "investment": investment,
            "total_value": total_value,
            "gain_loss_amount": gain_loss,
            "gain_loss_percent": gain_loss / investment * 100 if investment else 0.0,
        }
    )


def aggregate(holdings: Iterable[Holding | None]) -> PortfolioSnapshot:
    """Compute derived holdings, sector rollups and portfolio totals.

    Pure and deterministic; the input holdings are not modified. A holding whose
    ``sector`` is ``None`` counts towards the portfolio totals but belongs to no
    sector rollup.
    """
    derived = [derive_holding(h) for h in holdings if h is not None]

    rollups: dict[str, SectorRollup] = {}
    total_value = 0.0
    total_gain_loss = 0.0
    total_investment = 0.0

    for holding in derived:
        value = holding.total_value or 0.0
        gain_loss = holding.gain_loss_amount or 0.0
        investment = holding.investment or 0.0

        total_value += value
        total_gain_loss += gain_loss
        total_investment += investment

        if holding.sector is None:
            continue
        rollup = rollups.setdefault(holding.sector, SectorRollup(sector=holding.sector))
        rollup.total_value += value
        rollup.total_gain_loss += gain_loss
        rollup.total_investment += investment
        rollup.holding_count += 1

    weighted = [
        h.model_copy(
            update={
                "portfolio_percent": (h.total_value or 0.0) / total_value * 100 if total_value else 0.0
            }
        )
        for h in derived
    ]

    return PortfolioSnapshot(
        holdings=weighted,
        sector_rollups=rollups,
        total_value=total_value,
        total_gain_loss=total_gain_loss,
        total_investment=total_investment,
    )
