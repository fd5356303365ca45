"""Exchange rate cache with a freshness window and background refresh"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from remit_gateway.domain.catalog import CurrencyRegistry
from remit_gateway.domain.exceptions import RateProviderError
from remit_gateway.domain.models import ExchangeRate, RateQuote
from remit_gateway.domain.ports import RateProvider
from remit_gateway.infrastructure.observability.metrics import (
    rate_cache_hits_counter,
    rate_cache_misses_counter,
    rate_fetch_failures_counter,
)
from remit_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

Pair = Tuple[str, str]


@dataclass
class RefreshSummary:
    refreshed: int = 0
    failed: List[Pair] = field(default_factory=list)


def build_exchange_rate(from_currency: str, to_currency: str, quote: RateQuote, fetched_at: datetime) -> ExchangeRate:
    """
    Validate a provider quote and turn it into a cache entry.

    Raises:
        RateProviderError: On a non-positive rate or an inconsistent inverse
    """
    if quote.rate is None or quote.rate <= 0:
        raise RateProviderError(f"Provider returned non-positive rate for {from_currency}-{to_currency}")

    inverse = quote.inverse_rate if quote.inverse_rate is not None else Decimal(1) / quote.rate
    if inverse <= 0:
        raise RateProviderError(f"Provider returned non-positive inverse rate for {from_currency}-{to_currency}")

    entry = ExchangeRate(
        from_currency=from_currency,
        to_currency=to_currency,
        rate=quote.rate,
        inverse_rate=inverse,
        spread=quote.spread,
        source=quote.source,
        last_updated=fetched_at,
        is_live=quote.is_live,
    )
    if not entry.inverse_consistent():
        raise RateProviderError(f"Inverse rate inconsistent for {from_currency}-{to_currency}")
    return entry


class ExchangeRateCache:
    """
    Most recent rate per ordered currency pair.

    Reads refetch lazily once an entry is older than the staleness window;
    a background task refreshes every known pair on a fixed interval so that
    reads are normally hits. Entries are immutable and swapped in with a
    single dict assignment.
    """

    def __init__(
        self,
        provider: RateProvider,
        currencies: CurrencyRegistry,
        staleness_window: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.provider = provider
        self.currencies = currencies
        self.staleness_window = staleness_window
        self._clock = clock
        self._entries: Dict[Pair, ExchangeRate] = {}
        self._pair_locks: Dict[Pair, asyncio.Lock] = {}
        self._refresh_task: Optional[asyncio.Task] = None

    def peek(self, from_currency: str, to_currency: str) -> Optional[ExchangeRate]:
        return self._entries.get((from_currency, to_currency))

    def snapshot(self) -> List[ExchangeRate]:
        return list(self._entries.values())

    async def get_rate(self, from_currency: str, to_currency: str) -> ExchangeRate:
        """Return a fresh rate, fetching from the provider on miss or staleness"""
        if from_currency == to_currency:
            return self._identity(from_currency)

        pair = (from_currency, to_currency)
        entry = self._entries.get(pair)
        if entry is not None and entry.is_fresh(self._clock(), self.staleness_window):
            rate_cache_hits_counter.inc()
            return entry

        lock = self._pair_locks.setdefault(pair, asyncio.Lock())
        async with lock:
            # Another reader may have refreshed while we waited
            entry = self._entries.get(pair)
            if entry is not None and entry.is_fresh(self._clock(), self.staleness_window):
                rate_cache_hits_counter.inc()
                return entry

            rate_cache_misses_counter.inc()
            return await self._fetch_and_store(pair)

    async def _fetch_and_store(self, pair: Pair) -> ExchangeRate:
        from_currency, to_currency = pair
        try:
            quote = await self.provider.fetch_rate(from_currency, to_currency)
        except RateProviderError:
            rate_fetch_failures_counter.labels(pair=f"{from_currency}-{to_currency}").inc()
            raise

        try:
            entry = build_exchange_rate(from_currency, to_currency, quote, self._clock())
        except RateProviderError:
            rate_fetch_failures_counter.labels(pair=f"{from_currency}-{to_currency}").inc()
            raise

        self._entries[entry.pair] = entry
        return entry

    async def refresh_all(self) -> RefreshSummary:
        """Refresh every ordered pair; one pair failing never stops the sweep"""
        summary = RefreshSummary()
        for pair in self.currencies.pairs():
            try:
                await self._fetch_and_store(pair)
                summary.refreshed += 1
            except RateProviderError as e:
                summary.failed.append(pair)
                logger.warning(
                    f"Failed to update rate {pair[0]}-{pair[1]}: {e}",
                    extra={"step": "rate_refresh", "pair": f"{pair[0]}-{pair[1]}"},
                )

        logger.info(
            "Rate refresh sweep completed",
            extra={"step": "rate_refresh", "refreshed": summary.refreshed, "failed": len(summary.failed)},
        )
        return summary

    async def _refresh_loop(self, interval_seconds: float) -> None:
        while True:
            try:
                await self.refresh_all()
            except Exception as e:
                logger.error(f"Unexpected error in rate refresh sweep: {e}", extra={"step": "rate_refresh"})
            await asyncio.sleep(interval_seconds)

    def start(self, interval_seconds: float) -> None:
        """Schedule the periodic refresh on the running event loop"""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_loop(interval_seconds))

    async def stop(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _identity(self, code: str) -> ExchangeRate:
        return ExchangeRate(
            from_currency=code,
            to_currency=code,
            rate=Decimal(1),
            inverse_rate=Decimal(1),
            spread=Decimal(0),
            source="identity",
            last_updated=self._clock(),
            is_live=True,
        )
