"""Time-boxed price cache in front of the price feed."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Protocol

from .domain import AssetDescriptor
from .errors import FetchError
from .logger import get_logger

logger = get_logger(__name__)


class PriceFeed(Protocol):
    async def fetch_prices(
        self, price_ids: Iterable[str]
    ) -> dict[str, Decimal | None]: ...


@dataclass(frozen=True)
class PriceSnapshot:
    """Prices by symbol as returned by one successful refresh."""

    prices: Mapping[str, Decimal | None]
    fetched_at: float

    def get(self, symbol: str) -> Decimal | None:
        return self.prices.get(symbol.upper())


class PriceCache:
    """Stale-but-available USD price cache.

    The current :class:`PriceSnapshot` is replaced by a single assignment
    once a refresh completes, so readers always see a whole snapshot. The
    refresh lock serializes writers only: a reader that finds a refresh in
    flight returns the previous snapshot instead of waiting, unless there is
    no snapshot yet.
    """

    def __init__(
        self,
        feed: PriceFeed,
        assets: Iterable[AssetDescriptor],
        *,
        ttl: float = 300.0,
        clock: Callable[[], float] = time.time,
    ):
        self._feed = feed
        self._price_ids: dict[str, str] = {
            asset.symbol.upper(): asset.price_id for asset in assets
        }
        self._ttl = ttl
        self._clock = clock
        self._snapshot: PriceSnapshot | None = None
        self._refresh_lock = asyncio.Lock()
        self.last_error: FetchError | None = None

    @property
    def snapshot(self) -> PriceSnapshot | None:
        return self._snapshot

    @property
    def symbols(self) -> list[str]:
        return list(self._price_ids)

    def is_fresh(self) -> bool:
        snapshot = self._snapshot
        return snapshot is not None and (self._clock() - snapshot.fetched_at) < self._ttl

    async def refresh(self) -> None:
        """Fetch every tracked symbol in one feed call and swap the snapshot.

        Raises:
            FetchError: If the feed call fails. The previous snapshot is kept.
        """
        async with self._refresh_lock:
            by_id = await self._feed.fetch_prices(self._price_ids.values())
            prices = {symbol: by_id.get(price_id) for symbol, price_id in self._price_ids.items()}
            self._snapshot = PriceSnapshot(
                prices=MappingProxyType(prices), fetched_at=self._clock()
            )
            self.last_error = None
            logger.debug(
                "Price cache refreshed: %d symbols, %d missing",
                len(prices),
                sum(1 for value in prices.values() if value is None),
            )

    async def _ensure_fresh(self) -> None:
        if self.is_fresh():
            return
        if self._refresh_lock.locked():
            if self._snapshot is None:
                # First fetch in flight elsewhere; wait for it
                async with self._refresh_lock:
                    pass
            return
        try:
            await self.refresh()
        except FetchError as exc:
            self.last_error = exc
            if self._snapshot is None:
                logger.warning("Price feed unavailable and no cached prices: %s", exc)
            else:
                logger.warning(
                    "Price refresh failed, serving prices from %.0fs ago: %s",
                    self._clock() - self._snapshot.fetched_at,
                    exc,
                )

    async def get_price(self, symbol: str) -> Decimal | None:
        """USD price of ``symbol``, or None if it has never been fetched."""
        await self._ensure_fresh()
        snapshot = self._snapshot
        return None if snapshot is None else snapshot.get(symbol)

    async def get_prices(self, symbols: Iterable[str]) -> dict[str, Decimal | None]:
        """USD prices for several symbols, read from one snapshot."""
        await self._ensure_fresh()
        snapshot = self._snapshot
        return {
            symbol: None if snapshot is None else snapshot.get(symbol)
            for symbol in symbols
        }
