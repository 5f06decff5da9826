"""Entry points used by the presentation layer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from .aggregator import (
    AggregationLimits,
    AggregationResult,
    EventSink,
    TransactionAggregator,
)
from .cache import PriceCache
from .clients import CoinGeckoPriceFeed, EtherscanClient, LedgerNode
from .constants import NATIVE_ASSET
from .domain import PortfolioSnapshot
from .resolver import BlockResolver, ResolvedBlock
from .state import AppState
from .units import format_fiat
from .validation import validate_address, validate_block_range
from .valuator import PortfolioValuator


@dataclass(frozen=True)
class TransactionHistory:
    """Aggregated transactions plus the ETH price used to show USD values.

    ``eth_price`` is None when the price feed could not be reached; the
    transactions are still complete.
    """

    result: AggregationResult
    eth_price: Decimal | None
    resolved: ResolvedBlock | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.result.to_dict(self.eth_price),
            "eth_price_usd": None if self.eth_price is None else format_fiat(self.eth_price),
            "resolved_start_block": None if self.resolved is None else self.resolved.block_number,
        }


@dataclass(frozen=True)
class BalanceAtDate:
    resolved: ResolvedBlock
    snapshot: PortfolioSnapshot

    def to_dict(self) -> dict[str, Any]:
        return {
            "block_number": self.resolved.block_number,
            "target_timestamp": self.resolved.target_timestamp,
            "chain_head": self.resolved.chain_head,
            "snapshot": self.snapshot.to_dict(),
        }


class AccountService:
    """Wires the node, indexer, price cache and core algorithms together.

    One instance may serve many requests; the price cache is the only state
    shared between them.
    """

    def __init__(
        self,
        state: AppState,
        *,
        node: LedgerNode | None = None,
        indexer: EtherscanClient | None = None,
        prices: PriceCache | None = None,
    ):
        s = state.settings
        self.state = state
        self.node = node or LedgerNode(s.rpc_url, request_timeout=s.request_timeout)
        self._indexer = indexer
        self.prices = prices or PriceCache(
            CoinGeckoPriceFeed(
                api_url=s.price_feed_url,
                api_key=s.coingecko_api_key.get_secret_value() if s.coingecko_api_key else None,
                request_timeout=s.request_timeout,
            ),
            [NATIVE_ASSET, *s.assets],
            ttl=s.price_cache_ttl,
        )
        self.resolver = BlockResolver(self.node)
        self.valuator = PortfolioValuator(self.node, self.prices, s.assets)
        self._aggregator: TransactionAggregator | None = None

    @property
    def aggregator(self) -> TransactionAggregator:
        """Built on first use; only transaction lookups need an Etherscan key."""
        if self._aggregator is None:
            s = self.state.settings
            indexer = self._indexer or EtherscanClient(
                s.etherscan_api_key_required,
                s.chain_id,
                api_url=s.etherscan_api_url,
                request_timeout=s.request_timeout,
            )
            self._aggregator = TransactionAggregator(
                indexer, limits=AggregationLimits.from_settings(s)
            )
        return self._aggregator

    async def resolve_block(self, value: str | date | datetime) -> ResolvedBlock:
        return await self.resolver.resolve_date(value)

    async def _eth_price(self) -> Decimal | None:
        """Current ETH price, or None when the feed has never answered."""
        price = await self.prices.get_price(NATIVE_ASSET.symbol)
        if price is None and self.prices.last_error is not None:
            self.state.logger.warning("ETH price unavailable: %s", self.prices.last_error)
        return price

    async def _plan_range(
        self,
        start_block: int | None,
        start_date: str | date | datetime | None,
        end_block: int | None,
    ) -> tuple[int, int, ResolvedBlock | None]:
        head = await self.node.get_block_height()
        resolved = None
        if start_date is not None:
            resolved = await self.resolver.resolve_date(start_date, chain_head=head)
            start_block = resolved.block_number
        start = start_block if start_block is not None else 0
        end = end_block if end_block is not None else head
        validate_block_range(start, end, head)
        return start, end, resolved

    async def transaction_history(
        self,
        address: str,
        *,
        start_block: int | None = None,
        start_date: str | date | datetime | None = None,
        end_block: int | None = None,
    ) -> TransactionHistory:
        """Buffered transaction history with a best-effort ETH price.

        Raises:
            ValidationError: On bad address, date or block range.
            AggregationError: If no page could be fetched.
        """
        address = validate_address(address)
        start, end, resolved = await self._plan_range(start_block, start_date, end_block)

        result, eth_price = await asyncio.gather(
            self.aggregator.aggregate(address, start, end),
            self._eth_price(),
            return_exceptions=True,
        )
        if isinstance(result, BaseException):
            raise result
        if isinstance(eth_price, BaseException):
            raise eth_price

        return TransactionHistory(result=result, eth_price=eth_price, resolved=resolved)

    async def stream_transactions(
        self,
        address: str,
        sink: EventSink,
        *,
        start_block: int | None = None,
        start_date: str | date | datetime | None = None,
        end_block: int | None = None,
    ) -> AggregationResult | None:
        """Incremental variant of :meth:`transaction_history`.

        Validation errors raise before anything is sent to ``sink``. The ETH
        price is looked up while the range is planned and applied to every
        batch.
        """
        address = validate_address(address)
        (start, end, _), eth_price = await asyncio.gather(
            self._plan_range(start_block, start_date, end_block),
            self._eth_price(),
        )
        return await self.aggregator.aggregate_stream(
            address, start, end, sink, eth_price=eth_price
        )

    async def balance_at_block(self, address: str, block_number: int) -> PortfolioSnapshot:
        address = validate_address(address)
        head = await self.node.get_block_height()
        validate_block_range(block_number, block_number, head)
        return await self.valuator.value_at(address, block_number)

    async def balance_at_date(
        self, address: str, value: str | date | datetime
    ) -> BalanceAtDate:
        """Resolve ``value`` to a block and value the address there.

        Raises:
            ValidationError: On bad address or date.
            ValuationError: If no balance could be fetched.
        """
        address = validate_address(address)
        resolved = await self.resolver.resolve_date(value)
        snapshot = await self.valuator.value_at(address, resolved.block_number)
        return BalanceAtDate(resolved=resolved, snapshot=snapshot)
