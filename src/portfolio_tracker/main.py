"""Main entry point for the portfolio tracker."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

from loguru import logger

from .config import Settings, get_settings
from .errors import InputError
from .models import Holding, PortfolioSnapshot
from .session import PortfolioSession

# ------------------------------------------------------------------
# Logging setup
# ------------------------------------------------------------------


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan> | "
            "{message}"
        ),
        level=level.upper(),
        colorize=True,
    )


# ------------------------------------------------------------------
# Core logic
# ------------------------------------------------------------------


def log_snapshot(snapshot: PortfolioSnapshot) -> None:
    """Write a sector-grouped summary of *snapshot* to the log."""
    for sector, rollup in snapshot.sector_rollups.items():
        logger.info(
            "{}: value={:,.2f} gain/loss={:+,.2f} ({:+.2f}%)",
            sector,
            rollup.total_value,
            rollup.total_gain_loss,
            rollup.gain_loss_percent,
        )
        for holding in snapshot.holdings:
            if holding.sector == sector:
                _log_holding(holding)

    unsectored = [h for h in snapshot.holdings if h.sector is None]
    if unsectored:
        logger.info("(no sector)")
        for holding in unsectored:
            _log_holding(holding)

    logger.info(
        "Portfolio: value={:,.2f} gain/loss={:+,.2f} ({:+.2f}%)",
        snapshot.total_value,
        snapshot.total_gain_loss,
        snapshot.gain_loss_percent,
    )


def _log_holding(holding: Holding) -> None:
    logger.info(
        "    {:<20} {:>10} qty={:g} cmp={:,.2f} value={:,.2f} ({:+.2f}%) P/E={} earnings={}",
        holding.name,
        holding.ticker,
        holding.quantity,
        holding.current_price or 0.0,
        holding.total_value or 0.0,
        holding.gain_loss_percent or 0.0,
        holding.pe_ratio if holding.pe_ratio is not None else "-",
        holding.last_earnings or "-",
    )


async def run(settings: Settings) -> PortfolioSnapshot:
    """Load the configured workbook and run ``settings.refresh_rounds`` refresh rounds."""
    path = Path(settings.workbook_path)
    data = path.read_bytes()

    async with PortfolioSession(settings=settings, auto_refresh=False) as session:
        session.load_file(path.name, data)
        logger.info("Parsed portfolio:")
        log_snapshot(session.snapshot)

        rounds = 0
        while settings.refresh_rounds == 0 or rounds < settings.refresh_rounds:
            if rounds:
                await asyncio.sleep(settings.refresh_interval_seconds)
            await session.refresh()
            rounds += 1
            if session.error:
                logger.warning("Refresh round {} failed: {}", rounds, session.error)
            logger.info("=== Refresh round {} ===", rounds)
            log_snapshot(session.snapshot)
        return session.snapshot


def main() -> None:
    """Run the portfolio tracker."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("=== Portfolio Tracker starting ===")
    logger.info(
        "Config loaded — workbook={} rounds={} ttl={}s delay={}s interval={}s",
        settings.workbook_path,
        settings.refresh_rounds,
        settings.cache_ttl_seconds,
        settings.request_delay_seconds,
        settings.refresh_interval_seconds,
    )

    try:
        asyncio.run(run(settings))
    except (InputError, OSError) as exc:
        logger.error("{}", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")

    logger.info("=== Done ===")


if __name__ == "__main__":
    main()
