from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence

from ..clients.etherscan import PageCursor
from ..constants import INDEXER_MAX_PAGE_SIZE
from ..errors import AggregationError, FetchError, RemoteAPIError, ValidationError
from ..logger import get_logger
from ..settings import LensSettings
from ..units import format_fiat
from ..validation import validate_address, validate_block_range
from .events import (
    BatchEvent,
    CompleteEvent,
    ErrorEvent,
    EventSink,
    InitialEvent,
    PageInfo,
    WarningEvent,
)
from .records import TransactionRecord, normalize_transaction

logger = get_logger(__name__)

BatchCallback = Callable[[list[TransactionRecord], PageInfo], Awaitable[None]]
WarningCallback = Callable[[str], Awaitable[None]]


class TransactionSource(Protocol):
    async def fetch_transactions_page(
        self,
        address: str,
        start_block: int,
        end_block: int,
        cursor: PageCursor,
    ) -> Sequence[Mapping[str, Any]]: ...


@dataclass(frozen=True)
class AggregationLimits:
    """Paging and ceiling configuration for one aggregator."""

    page_size: int = INDEXER_MAX_PAGE_SIZE
    page_delay: float = 0.25
    max_records: int = 10_000
    max_pages: int = 10

    @classmethod
    def from_settings(cls, settings: LensSettings) -> "AggregationLimits":
        return cls(
            page_size=settings.page_size,
            page_delay=settings.page_delay,
            max_records=settings.max_records,
            max_pages=settings.max_pages,
        )


@dataclass
class AggregationResult:
    """Transactions gathered for one address and block range.

    ``reached_limit`` marks a record or page ceiling, ``truncated`` an
    indexer pagination window, ``partial`` a failure after some pages had
    already been gathered. All three keep the data collected so far.
    """

    address: str
    start_block: int
    end_block: int
    transactions: list[TransactionRecord] = field(default_factory=list)
    pages_fetched: int = 0
    reached_limit: bool = False
    truncated: bool = False
    partial: bool = False
    cancelled: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.transactions)

    def summary(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "start_block": self.start_block,
            "end_block": self.end_block,
            "count": self.count,
            "pages_fetched": self.pages_fetched,
            "reached_limit": self.reached_limit,
            "truncated": self.truncated,
            "partial": self.partial,
            "warnings": list(self.warnings),
        }

    def to_dict(self, eth_price: Decimal | None = None) -> dict[str, Any]:
        return {
            **self.summary(),
            "transactions": [tx.to_dict(eth_price, self.address) for tx in self.transactions],
        }


class TransactionAggregator:
    """Walks the indexer page by page over a block range.

    Pages are requested newest first and strictly one after another, with
    ``page_delay`` seconds between requests. Stop conditions, in order:
    no data, pagination window exceeded, any other failure, short page,
    record/page ceiling.
    """

    def __init__(
        self,
        source: TransactionSource,
        *,
        limits: AggregationLimits | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._source = source
        self.limits = limits or AggregationLimits()
        self._sleep = sleep

    async def aggregate(
        self, address: str, start_block: int, end_block: int
    ) -> AggregationResult:
        """Collect every transaction of ``address`` in ``[start_block, end_block]``.

        Raises:
            ValidationError: On a malformed address or block range.
            AggregationError: If the first page fails.
        """
        address = validate_address(address)
        validate_block_range(start_block, end_block)

        result = await self._walk(address, start_block, end_block)
        result.transactions.sort(key=lambda tx: tx.block_number, reverse=True)
        logger.info(
            "Aggregated %d transactions for %s over blocks [%d,%d] in %d pages",
            result.count,
            address,
            start_block,
            end_block,
            result.pages_fetched,
        )
        return result

    async def aggregate_stream(
        self,
        address: str,
        start_block: int,
        end_block: int,
        sink: EventSink,
        *,
        eth_price: Decimal | None = None,
    ) -> AggregationResult | None:
        """Emit transactions to ``sink`` as each page arrives.

        The sink receives one ``initial`` event, then ``batch`` and
        ``warning`` events, then a single ``complete`` or ``error`` event.
        Nothing terminal is sent when the sink closes mid-way. ``eth_price``
        is used for the USD values of batch records.

        Returns:
            The aggregation result, or None if it ended with an error event.
        """
        try:
            address = validate_address(address)
            validate_block_range(start_block, end_block)
        except ValidationError as exc:
            await sink.send(ErrorEvent(message=str(exc)))
            return None

        await sink.send(
            InitialEvent(
                context={
                    "address": address,
                    "start_block": start_block,
                    "end_block": end_block,
                    "page_size": self.limits.page_size,
                    "max_records": self.limits.max_records,
                    "eth_price_usd": None if eth_price is None else format_fiat(eth_price),
                }
            )
        )

        async def on_batch(records: list[TransactionRecord], info: PageInfo) -> None:
            await sink.send(
                BatchEvent(
                    records=tuple(records),
                    page_info=info,
                    owner=address,
                    eth_price=eth_price,
                )
            )

        async def on_warning(message: str) -> None:
            await sink.send(WarningEvent(message=message))

        try:
            result = await self._walk(
                address,
                start_block,
                end_block,
                on_batch=on_batch,
                on_warning=on_warning,
                is_alive=lambda: sink.is_open,
            )
        except AggregationError as exc:
            await sink.send(ErrorEvent(message=str(exc)))
            return None
        except Exception as exc:
            await sink.send(ErrorEvent(message=f"Unexpected aggregation failure: {exc}"))
            raise

        if result.cancelled:
            logger.info(
                "Stream for %s stopped after %d pages: consumer disconnected",
                address,
                result.pages_fetched,
            )
            return result

        await sink.send(CompleteEvent(summary=result.summary()))
        return result

    async def _walk(
        self,
        address: str,
        start_block: int,
        end_block: int,
        *,
        on_batch: BatchCallback | None = None,
        on_warning: WarningCallback | None = None,
        is_alive: Callable[[], bool] | None = None,
    ) -> AggregationResult:
        limits = self.limits
        result = AggregationResult(
            address=address, start_block=start_block, end_block=end_block
        )

        async def warn(message: str) -> None:
            logger.warning(message)
            result.warnings.append(message)
            if on_warning is not None:
                await on_warning(message)

        cursor = PageCursor(page=1, page_size=limits.page_size, sort="desc")
        while True:
            if cursor.page > 1 and limits.page_delay > 0:
                await self._sleep(limits.page_delay)
            if is_alive is not None and not is_alive():
                result.cancelled = True
                break

            try:
                raw_records = await self._source.fetch_transactions_page(
                    address, start_block, end_block, cursor
                )
            except RemoteAPIError as exc:
                if exc.is_page_window_error:
                    result.truncated = True
                    await warn(
                        f"Indexer pagination window reached at page {cursor.page}; "
                        f"results truncated to {result.count} transactions"
                    )
                    break
                await self._degrade_or_abort(result, cursor, exc, warn)
                break
            except FetchError as exc:
                await self._degrade_or_abort(result, cursor, exc, warn)
                break

            if not raw_records:
                break

            records = self._normalize_page(raw_records, cursor)
            room = limits.max_records - result.count
            page_is_full = len(raw_records) >= limits.page_size
            if len(records) > room or (len(records) == room and page_is_full):
                records = records[:room]
                result.reached_limit = True

            result.transactions.extend(records)
            result.pages_fetched += 1
            if on_batch is not None:
                await on_batch(
                    records,
                    PageInfo(
                        page=cursor.page,
                        page_size=limits.page_size,
                        records_in_page=len(raw_records),
                        total_so_far=result.count,
                    ),
                )

            if result.reached_limit:
                await warn(f"Record limit of {limits.max_records} reached")
                break
            if not page_is_full:
                break
            if result.pages_fetched >= limits.max_pages:
                result.reached_limit = True
                await warn(f"Page limit of {limits.max_pages} reached")
                break
            cursor = cursor.next()

        return result

    @staticmethod
    async def _degrade_or_abort(
        result: AggregationResult,
        cursor: PageCursor,
        exc: FetchError,
        warn: WarningCallback,
    ) -> None:
        if result.pages_fetched == 0:
            raise AggregationError(
                f"Failed to fetch transactions for {result.address}: {exc}",
                cause=exc,
            ) from exc
        result.partial = True
        await warn(
            f"Page {cursor.page} failed ({exc}); returning {result.count} "
            f"transactions from {result.pages_fetched} earlier pages"
        )

    @staticmethod
    def _normalize_page(
        raw_records: Sequence[Mapping[str, Any]], cursor: PageCursor
    ) -> list[TransactionRecord]:
        records: list[TransactionRecord] = []
        for raw in raw_records:
            try:
                records.append(normalize_transaction(raw))
            except (TypeError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed transaction on page %d: %s", cursor.page, exc
                )
        return records
