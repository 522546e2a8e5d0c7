"""Time-boxed quote cache in front of a serialized, rate-limited request queue."""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable

from loguru import logger

from .config import Settings
from .gateway import MarketDataGateway
from .models import CacheStat, Quote


@dataclass(frozen=True)
class CacheEntry:
    quote: Quote
    timestamp: float


@dataclass
class _Request:
    ticker: str
    future: asyncio.Future[Quote]


class RateLimitedCache:
    """Serve quotes from a per-ticker TTL cache, fetching misses one at a time.

    Every request, for any ticker, goes through a single FIFO queue drained by
    one task. After each request (hit, miss or failure) the drain task waits
    ``delay`` seconds before taking the next, which caps the global outbound
    request rate. Concurrent requests for the same ticker are not coalesced;
    since dispatch is serialized, the later one is normally served from the
    entry the earlier one stored.

    Parameters
    ----------
    gateway:
        Upstream market-data gateway.
    ttl:
        Seconds a cached quote stays valid.
    delay:
        Seconds to wait between two consecutive requests.
    clock:
        Monotonic time source; injectable for tests.
    sleep:
        Coroutine used for the inter-request pause; injectable for tests.
    """

    def __init__(
        self,
        gateway: MarketDataGateway,
        ttl: float = 15.0,
        delay: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._ttl = ttl
        self._delay = delay
        self._clock = clock
        self._sleep = sleep
        self._entries: dict[str, CacheEntry] = {}
        self._pending: deque[_Request] = deque()
        self._drain_task: asyncio.Task[None] | None = None
        self._current: _Request | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimitedCache":
        return cls(
            MarketDataGateway.from_settings(settings),
            ttl=settings.cache_ttl_seconds,
            delay=settings.request_delay_seconds,
        )

    async def get_quote(self, ticker: str) -> Quote:
        """Queue a lookup for *ticker* and wait for its turn.

        Raises whatever the gateway raised for this particular request; other
        queued requests are unaffected.
        """
        future: asyncio.Future[Quote] = asyncio.get_running_loop().create_future()
        self._pending.append(_Request(ticker, future))
        self._ensure_draining()
        return await future

    def clear(self) -> None:
        """Drop every cached entry."""
        logger.debug("Clearing {} cached quote(s)", len(self._entries))
        self._entries.clear()

    def stats(self) -> list[CacheStat]:
        now = self._clock()
        return [
            CacheStat(
                ticker=ticker,
                age=now - entry.timestamp,
                is_valid=now - entry.timestamp < self._ttl,
            )
            for ticker, entry in self._entries.items()
        ]

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def aclose(self) -> None:
        """Stop the drain task, fail in-flight and queued requests, close the gateway."""
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._drain_task
        self._drain_task = None
        if self._current is not None:
            _fail_closed(self._current)
            self._current = None
        while self._pending:
            _fail_closed(self._pending.popleft())
        await self._gateway.aclose()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _ensure_draining(self) -> None:
        # Only one drain loop may run at a time.
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending:
            request = self._pending.popleft()
            if request.future.done():
                # Caller gave up while waiting in the queue.
                continue
            self._current = request
            try:
                quote = await self._lookup(request.ticker)
            except asyncio.CancelledError:
                _fail_closed(request)
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("Quote request for '{}' failed: {}", request.ticker, exc)
                if not request.future.done():
                    request.future.set_exception(exc)
            else:
                if not request.future.done():
                    request.future.set_result(quote)
            finally:
                self._current = None
            await self._sleep(self._delay)

    async def _lookup(self, ticker: str) -> Quote:
        entry = self._entries.get(ticker)
        if entry is not None and self._clock() - entry.timestamp < self._ttl:
            logger.trace("Cache hit for '{}'", ticker)
            return entry.quote

        quote = await self._gateway.fetch_quote(ticker)
        self._entries[ticker] = CacheEntry(quote=quote, timestamp=self._clock())
        return quote


def _fail_closed(request: _Request) -> None:
    if not request.future.done():
        request.future.set_exception(RuntimeError("quote cache closed"))
