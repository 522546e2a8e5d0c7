"""Simulated market data returned when an upstream source is unavailable."""

from __future__ import annotations

import random
from datetime import date
from typing import Callable

from .models import Quote

_QUARTERS = ("Q1", "Q2", "Q3", "Q4")
_DAY_RANGE = 0.02


class SyntheticQuotes:
    """Plausible stand-in quotes so a dead upstream never blocks the portfolio view.

    Parameters
    ----------
    rng:
        Random source; pass a seeded ``random.Random`` for reproducible output.
    price_min, price_max:
        Range of the simulated price.
    today:
        Date provider used for the simulated earnings label.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        price_min: float = 500.0,
        price_max: float = 2500.0,
        today: Callable[[], date] = date.today,
    ) -> None:
        if price_max < price_min:
            raise ValueError(f"price_max ({price_max}) must not be below price_min ({price_min})")
        self._rng = rng or random.Random()
        self._price_min = price_min
        self._price_max = price_max
        self._today = today

    def price(self) -> Quote:
        """Random price with a +/-2% day range and a random volume."""
        base = self._rng.uniform(self._price_min, self._price_max)
        variance = base * _DAY_RANGE
        return Quote(
            current_price=round(base, 2),
            day_high=round(base + variance, 2),
            day_low=round(base - variance, 2),
            volume=self._rng.randrange(10_000, 1_010_000),
        )

    def metrics(self) -> Quote:
        """Random P/E in [10, 50] and a random fiscal quarter of the current year."""
        quarter = self._rng.choice(_QUARTERS)
        return Quote(
            pe_ratio=round(self._rng.uniform(10.0, 50.0), 1),
            last_earnings=f"{quarter} {self._today().year}",
        )
