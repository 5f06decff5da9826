from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from ledger_lens.constants import GENESIS_TIMESTAMP
from ledger_lens.errors import (
    InvalidAddressError,
    InvalidBlockRangeError,
    InvalidDateError,
    ValidationError,
)
from ledger_lens.validation import (
    parse_date,
    validate_address,
    validate_block_range,
    validate_date,
)

CHECKSUMMED = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


class TestValidateAddress:
    def test_lowercase_is_checksummed(self):
        assert validate_address(CHECKSUMMED.lower()) == CHECKSUMMED

    def test_valid_checksum_passes(self):
        assert validate_address(CHECKSUMMED) == CHECKSUMMED

    def test_surrounding_whitespace_is_ignored(self):
        assert validate_address(f"  {CHECKSUMMED}\n") == CHECKSUMMED

    @pytest.mark.parametrize(
        "address",
        [
            "",
            "0x123",
            "A0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48zz",
            "0xZZb86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            # mixed case with a broken checksum
            "0xa0B86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        ],
    )
    def test_invalid_addresses_rejected(self, address):
        with pytest.raises(InvalidAddressError):
            validate_address(address)

    def test_broken_checksum_reported(self):
        with pytest.raises(InvalidAddressError, match="checksum"):
            validate_address("0xa0B86991c6218b36c1d19D4a2e9Eb0cE3606eB48")

    def test_uppercase_hex_is_checksummed(self):
        assert validate_address("0x" + CHECKSUMMED[2:].upper()) == CHECKSUMMED

    def test_validation_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            validate_address("nope")


class TestValidateBlockRange:
    def test_valid_range(self):
        assert validate_block_range(10, 20, chain_head=30) == (10, 20)

    def test_single_block_range(self):
        assert validate_block_range(5, 5) == (5, 5)

    def test_negative_rejected(self):
        with pytest.raises(InvalidBlockRangeError, match="non-negative"):
            validate_block_range(-1, 10)

    def test_inverted_rejected(self):
        with pytest.raises(InvalidBlockRangeError, match="after end block"):
            validate_block_range(20, 10)

    def test_beyond_head_rejected(self):
        with pytest.raises(InvalidBlockRangeError, match="beyond the current chain head"):
            validate_block_range(10, 31, chain_head=30)


class TestDates:
    NOW = datetime(2024, 6, 1, tzinfo=timezone.utc).timestamp()

    def test_plain_date_string_is_utc_midnight(self):
        assert validate_date("2020-01-01", now=self.NOW) == 1577836800

    def test_iso_datetime_with_z_suffix(self):
        assert validate_date("2020-01-01T12:00:00Z", now=self.NOW) == 1577880000

    def test_offset_is_converted_to_utc(self):
        parsed = parse_date("2020-01-01T02:00:00+02:00")
        assert parsed == datetime(2020, 1, 1, tzinfo=timezone.utc)

    def test_date_object(self):
        assert validate_date(date(2020, 1, 1), now=self.NOW) == 1577836800

    def test_before_genesis_rejected(self):
        with pytest.raises(InvalidDateError, match="before Ethereum genesis"):
            validate_date("2015-07-29", now=self.NOW)

    def test_genesis_instant_accepted(self):
        genesis = datetime.fromtimestamp(GENESIS_TIMESTAMP, timezone.utc)
        assert validate_date(genesis, now=self.NOW) == GENESIS_TIMESTAMP

    def test_future_rejected(self):
        with pytest.raises(InvalidDateError, match="in the future"):
            validate_date("2024-06-02", now=self.NOW)

    def test_garbage_rejected(self):
        with pytest.raises(ValidationError, match="Unrecognized date"):
            validate_date("last tuesday", now=self.NOW)
