from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Awaitable, Callable, Protocol

from .errors import InvalidBlockRangeError
from .logger import get_logger
from .validation import validate_date

logger = get_logger(__name__)


class BlockSource(Protocol):
    async def get_block_height(self) -> int: ...

    async def get_block_timestamp(self, block_number: int) -> int: ...


@dataclass(frozen=True)
class ResolvedBlock:
    """Block found for a target timestamp."""

    block_number: int
    target_timestamp: int
    chain_head: int
    lookups: int


async def find_block_at_or_after(
    target_timestamp: int,
    chain_head: int,
    timestamp_of: Callable[[int], Awaitable[int]],
) -> tuple[int, int]:
    """Binary search for the first block whose timestamp is >= target.

    Each step awaits the previous one; lookups are never issued in parallel.

    Args:
        target_timestamp: UNIX timestamp to locate.
        chain_head: Highest block to consider.
        timestamp_of: Coroutine returning a block's timestamp.

    Returns:
        ``(block_number, lookups)``. ``block_number`` is ``chain_head`` when
        every block predates the target. Equal timestamps resolve to the
        lowest such block.
    """
    if chain_head < 0:
        raise InvalidBlockRangeError(f"Chain head must be non-negative, got {chain_head}")

    low, high = 0, chain_head
    closest = chain_head
    lookups = 0

    while low <= high:
        mid = (low + high) // 2
        timestamp = await timestamp_of(mid)
        lookups += 1
        if timestamp < target_timestamp:
            low = mid + 1
        else:
            # mid qualifies; keep looking below it for an earlier match
            closest = mid
            high = mid - 1

    return closest, lookups


class BlockResolver:
    """Maps wall-clock instants to block heights through a node."""

    def __init__(self, node: BlockSource):
        self._node = node

    async def resolve(self, target_timestamp: int, chain_head: int) -> int:
        block_number, lookups = await find_block_at_or_after(
            target_timestamp, chain_head, self._node.get_block_timestamp
        )
        logger.debug(
            "Resolved timestamp %d to block %d in %d lookups (head %d)",
            target_timestamp,
            block_number,
            lookups,
            chain_head,
        )
        return block_number

    async def resolve_date(
        self,
        value: str | date | datetime,
        *,
        chain_head: int | None = None,
        now: float | None = None,
    ) -> ResolvedBlock:
        """Validate ``value`` and resolve it against the current chain head.

        Raises:
            InvalidDateError: If the date predates genesis or is in the future.
        """
        target = validate_date(value, now=now)
        head = chain_head if chain_head is not None else await self._node.get_block_height()
        block_number, lookups = await find_block_at_or_after(
            target, head, self._node.get_block_timestamp
        )
        logger.info(
            "Date %s resolved to block %d (%d lookups)", value, block_number, lookups
        )
        return ResolvedBlock(
            block_number=block_number,
            target_timestamp=target,
            chain_head=head,
            lookups=lookups,
        )
