from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

NATIVE_DECIMALS = 18
GWEI_DECIMALS = 9

AMOUNT_PLACES = 6
FIAT_PLACES = 2


def to_decimal(value: int, decimals: int = NATIVE_DECIMALS) -> Decimal:
    """Convert an integer amount in smallest units to a Decimal in whole units."""
    return Decimal(value).scaleb(-decimals)


def quantize(value: Decimal, places: int) -> Decimal:
    """Round ``value`` to ``places`` decimals, halves away from zero.

    Decimal's ROUND_HALF_UP rounds ties away from zero for both signs.
    """
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def format_units(
    value: int, decimals: int = NATIVE_DECIMALS, places: int = AMOUNT_PLACES
) -> str:
    """Format an integer amount in smallest units as a fixed-point string.

    Args:
        value: Integer amount expressed with ``decimals`` decimal places.
        decimals: Decimal precision of ``value`` (18 for wei).
        places: Number of decimals shown.

    Returns:
        e.g. ``format_units(1500000000000000000) == "1.500000"``
    """
    return f"{quantize(to_decimal(value, decimals), places):f}"


def format_fiat(value: Decimal) -> str:
    return f"{quantize(value, FIAT_PLACES):f}"


def compute_fee(gas_price_wei: int, gas_used: int) -> int:
    """Transaction fee in wei. Kept as an integer until presentation."""
    return gas_price_wei * gas_used
