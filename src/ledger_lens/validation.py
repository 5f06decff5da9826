"""Input validation for addresses, block ranges and dates."""

from __future__ import annotations

import time
from datetime import date, datetime, timezone

from eth_typing import ChecksumAddress
from web3 import Web3

from .constants import GENESIS_TIMESTAMP
from .errors import InvalidAddressError, InvalidBlockRangeError, InvalidDateError


def validate_address(address: str) -> ChecksumAddress:
    """Return the EIP-55 checksum form of ``address``.

    All-lowercase and all-uppercase hex are accepted; mixed case must carry
    a valid checksum.

    Raises:
        InvalidAddressError: If the address is malformed.
    """
    candidate = (address or "").strip()
    if not Web3.is_address(candidate):
        raise InvalidAddressError(f"Invalid Ethereum address: {address!r}")
    body = candidate[2:] if candidate[:2].lower() == "0x" else candidate
    mixed_case = body != body.lower() and body != body.upper()
    if mixed_case and not Web3.is_checksum_address(candidate):
        raise InvalidAddressError(f"Invalid EIP-55 checksum: {address!r}")
    return Web3.to_checksum_address(candidate)


def validate_block_range(
    start_block: int, end_block: int, chain_head: int | None = None
) -> tuple[int, int]:
    """Check that ``0 <= start_block <= end_block [<= chain_head]``."""
    if start_block < 0 or end_block < 0:
        raise InvalidBlockRangeError(
            f"Block numbers must be non-negative (start={start_block}, end={end_block})"
        )
    if start_block > end_block:
        raise InvalidBlockRangeError(
            f"Start block {start_block} is after end block {end_block}"
        )
    if chain_head is not None and end_block > chain_head:
        raise InvalidBlockRangeError(
            f"End block {end_block} is beyond the current chain head {chain_head}"
        )
    return start_block, end_block


def parse_date(value: str | date | datetime) -> datetime:
    """Parse ``YYYY-MM-DD`` or ISO-8601 input into an aware UTC datetime.

    Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidDateError(f"Unrecognized date: {value!r}") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def validate_date(
    value: str | date | datetime, *, now: float | None = None
) -> int:
    """Validate a date and return it as a UNIX timestamp.

    Raises:
        InvalidDateError: If the date predates mainnet genesis or lies in the
            future.
    """
    timestamp = int(parse_date(value).timestamp())
    current = int(now if now is not None else time.time())

    if timestamp < GENESIS_TIMESTAMP:
        raise InvalidDateError(
            f"Date {value!s} is before Ethereum genesis "
            f"({datetime.fromtimestamp(GENESIS_TIMESTAMP, timezone.utc).isoformat()})"
        )
    if timestamp > current:
        raise InvalidDateError(f"Date {value!s} is in the future")
    return timestamp
