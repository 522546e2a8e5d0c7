"""Portfolio session: owns the holdings, the quote cache and the refresh loop."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Sequence

from loguru import logger

from .aggregation import aggregate
from .config import Settings, get_settings
from .errors import RefreshRoundError
from .models import Holding, PortfolioSnapshot
from .quote_cache import RateLimitedCache
from .refresh import QuoteProvider, refresh_holdings
from .scheduler import RefreshScheduler, SchedulerState
from .workbook import load_holdings

SnapshotListener = Callable[[PortfolioSnapshot], None]


class PortfolioSession:
    """Single-user, in-memory portfolio session.

    Holdings are replaced wholesale by :meth:`load_file` / :meth:`set_holdings`
    and updated only by refresh rounds. Every replacement bumps a generation
    counter; a refresh that started against an older generation discards its
    result when it completes.

    Parameters
    ----------
    cache:
        Quote provider used by refresh rounds. When omitted a
        ``RateLimitedCache`` is built from *settings* and closed with the session.
    settings:
        Configuration; defaults to :func:`get_settings`.
    refresh_interval:
        Polling period in seconds; defaults to ``settings.refresh_interval_seconds``.
    auto_refresh:
        Start the polling loop whenever non-empty holdings are set.
    """

    def __init__(
        self,
        cache: QuoteProvider | None = None,
        settings: Settings | None = None,
        refresh_interval: float | None = None,
        auto_refresh: bool = True,
    ) -> None:
        settings = settings or get_settings()
        self._owns_cache = cache is None
        self._cache: QuoteProvider = cache or RateLimitedCache.from_settings(settings)
        self._interval = refresh_interval or settings.refresh_interval_seconds
        self._auto_refresh = auto_refresh

        self._holdings: list[Holding] = []
        self._snapshot = PortfolioSnapshot()
        self._generation = 0
        self._in_flight = 0
        self._scheduler: RefreshScheduler | None = None
        self._listeners: list[SnapshotListener] = []

        self.error: str | None = None
        self.last_updated: datetime | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def holdings(self) -> list[Holding]:
        return list(self._holdings)

    @property
    def snapshot(self) -> PortfolioSnapshot:
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def state(self) -> SchedulerState:
        if self._scheduler is None:
            return SchedulerState.IDLE
        return self._scheduler.state

    @property
    def scheduler(self) -> RefreshScheduler | None:
        return self._scheduler

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call *listener* with every published snapshot; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Holdings replacement
    # ------------------------------------------------------------------

    def load_file(self, filename: str, data: bytes) -> PortfolioSnapshot:
        """Parse an uploaded workbook and make it the current portfolio.

        ``InputError`` propagates to the caller and leaves the session untouched.
        """
        holdings = load_holdings(data, filename)
        logger.info("Loaded {} holding(s) from '{}'", len(holdings), filename)
        return self.set_holdings(holdings)

    def set_holdings(self, holdings: Sequence[Holding | None]) -> PortfolioSnapshot:
        """Replace the portfolio, restart polling and publish the new snapshot."""
        valid = [
            h
            for h in holdings
            if h is not None and (h.quantity or 0) > 0 and (h.buy_price or 0) > 0
        ]
        if len(valid) != len(holdings):
            logger.warning("Dropped {} invalid holding(s)", len(holdings) - len(valid))

        self._stop_scheduler()
        self._generation += 1
        self.error = None
        self._publish(aggregate(valid))

        if valid and self._auto_refresh:
            self._scheduler = RefreshScheduler(self.refresh, interval=self._interval)
            self._scheduler.start()
        return self._snapshot

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> None:
        """Run one refresh round against the current holdings.

        Errors are logged and exposed through :attr:`error`; they never
        propagate, so the polling loop keeps running.
        """
        if not self._holdings:
            return

        generation = self._generation
        holdings = self._holdings
        self._in_flight += 1
        try:
            updated = await refresh_holdings(holdings, self._cache)
            if generation != self._generation:
                logger.info("Discarding refresh result for replaced holdings (generation {})", generation)
                return
            self.error = None
            self._publish(aggregate(updated))
        except Exception as exc:  # noqa: BLE001
            error = RefreshRoundError(str(exc) or type(exc).__name__)
            logger.exception("Error refreshing stock data: {}", error)
            if generation == self._generation:
                self.error = str(error)
        finally:
            self._in_flight -= 1

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Stop polling, invalidate in-flight refreshes and release the cache."""
        if self._scheduler is not None:
            await self._scheduler.aclose()
            self._scheduler = None
        self._generation += 1
        if self._owns_cache and isinstance(self._cache, RateLimitedCache):
            await self._cache.aclose()

    async def __aenter__(self) -> "PortfolioSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _stop_scheduler(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()
            self._scheduler = None

    def _publish(self, snapshot: PortfolioSnapshot) -> None:
        self._snapshot = snapshot
        self._holdings = list(snapshot.holdings)
        self.last_updated = datetime.now(tz=timezone.utc)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # noqa: BLE001
                logger.exception("Snapshot listener {} failed", listener)
