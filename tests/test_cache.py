from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from fakes import FakePriceFeed
from ledger_lens.cache import PriceCache
from ledger_lens.constants import NATIVE_ASSET, TRACKED_ASSETS
from ledger_lens.errors import TransportError

ASSETS = [NATIVE_ASSET, TRACKED_ASSETS["USDC"], TRACKED_ASSETS["DAI"]]


class Clock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def feed():
    return FakePriceFeed(
        {"ethereum": Decimal("3000"), "usd-coin": Decimal("1.00"), "dai": Decimal("0.999")}
    )


@pytest.fixture
def cache(feed, clock):
    return PriceCache(feed, ASSETS, ttl=60, clock=clock)


@pytest.mark.asyncio
async def test_first_read_fetches_all_symbols_once(cache, feed):
    prices = await cache.get_prices(["ETH", "USDC", "DAI"])

    assert prices == {
        "ETH": Decimal("3000"),
        "USDC": Decimal("1.00"),
        "DAI": Decimal("0.999"),
    }
    assert feed.calls == 1


@pytest.mark.asyncio
async def test_within_ttl_uses_cache(cache, feed, clock):
    await cache.get_price("ETH")
    clock.now += 59
    feed.prices["ethereum"] = Decimal("9999")

    assert await cache.get_price("eth") == Decimal("3000")
    assert feed.calls == 1
    assert cache.is_fresh()


@pytest.mark.asyncio
async def test_expired_entry_refreshes(cache, feed, clock):
    await cache.get_price("ETH")
    clock.now += 61
    feed.prices["ethereum"] = Decimal("3100")

    assert not cache.is_fresh()
    assert await cache.get_price("ETH") == Decimal("3100")
    assert feed.calls == 2


@pytest.mark.asyncio
async def test_failed_refresh_serves_stale_prices(cache, feed, clock):
    await cache.get_price("ETH")
    clock.now += 120
    feed.error = TransportError("feed down")

    assert await cache.get_price("ETH") == Decimal("3000")
    assert isinstance(cache.last_error, TransportError)
    assert cache.snapshot.fetched_at == 1_000.0


@pytest.mark.asyncio
async def test_feed_down_without_cache_returns_none(cache, feed):
    feed.error = TransportError("feed down")

    assert await cache.get_price("ETH") is None
    assert cache.snapshot is None


@pytest.mark.asyncio
async def test_missing_symbol_is_none(feed, clock):
    del feed.prices["dai"]
    cache = PriceCache(feed, ASSETS, ttl=60, clock=clock)

    prices = await cache.get_prices(["DAI", "USDC", "WBTC"])

    assert prices["DAI"] is None
    assert prices["USDC"] == Decimal("1.00")
    assert prices["WBTC"] is None


@pytest.mark.asyncio
async def test_reader_gets_previous_snapshot_during_refresh(cache, feed, clock):
    await cache.get_price("ETH")
    clock.now += 61
    feed.prices["ethereum"] = Decimal("3200")
    feed.gate = asyncio.Event()

    refresher = asyncio.create_task(cache.get_price("ETH"))
    await asyncio.sleep(0)

    # refresh is parked on the gate; readers are not blocked by it
    assert await cache.get_price("ETH") == Decimal("3000")

    feed.gate.set()
    assert await refresher == Decimal("3200")
    assert await cache.get_price("ETH") == Decimal("3200")
    assert feed.calls == 2


@pytest.mark.asyncio
async def test_concurrent_first_reads_share_one_fetch(cache, feed):
    feed.gate = asyncio.Event()

    first = asyncio.create_task(cache.get_price("ETH"))
    await asyncio.sleep(0)
    second = asyncio.create_task(cache.get_price("USDC"))
    await asyncio.sleep(0)
    feed.gate.set()

    assert await first == Decimal("3000")
    assert await second == Decimal("1.00")
    assert feed.calls == 1


def test_symbols_are_uppercased(feed):
    cache = PriceCache(feed, ASSETS)

    assert cache.symbols == ["ETH", "USDC", "DAI"]
