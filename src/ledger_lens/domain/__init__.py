"""Domain models for account snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..units import format_fiat, format_units


@dataclass(frozen=True)
class AssetDescriptor:
    """Static catalog entry for an asset the valuator knows how to price."""

    symbol: str
    name: str
    contract_address: str | None  # None for the native asset
    decimals: int
    price_id: str  # price feed identifier

    @property
    def is_native(self) -> bool:
        return self.contract_address is None


@dataclass(frozen=True)
class AssetHolding:
    """Balance of one asset at a block, optionally priced in USD."""

    asset: AssetDescriptor
    balance_raw: int
    price_usd: Decimal | None = None

    @property
    def balance(self) -> Decimal:
        return Decimal(self.balance_raw) / (Decimal(10) ** self.asset.decimals)

    @property
    def value_usd(self) -> Decimal | None:
        if self.price_usd is None:
            return None
        return self.balance * self.price_usd

    def to_dict(self) -> dict:
        value = self.value_usd
        return {
            "symbol": self.asset.symbol,
            "name": self.asset.name,
            "contract_address": self.asset.contract_address,
            "balance_raw": str(self.balance_raw),
            "balance": format_units(self.balance_raw, self.asset.decimals),
            "price_usd": None if self.price_usd is None else str(self.price_usd),
            "value_usd": None if value is None else format_fiat(value),
        }


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Point-in-time valuation of an address.

    ``total_value_usd`` is None whenever a holding could not be priced or
    the native balance is unknown, so callers can tell "unknown" apart
    from a confirmed zero.
    """

    address: str
    block_number: int
    native: AssetHolding | None
    assets: tuple[AssetHolding, ...] = ()
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def holdings(self) -> tuple[AssetHolding, ...]:
        if self.native is None:
            return self.assets
        return (self.native, *self.assets)

    @property
    def total_value_usd(self) -> Decimal | None:
        if self.native is None:
            return None
        values = [holding.value_usd for holding in self.holdings]
        if any(value is None for value in values):
            return None
        return sum(values, Decimal(0))  # type: ignore[arg-type]

    def to_dict(self) -> dict:
        total = self.total_value_usd
        return {
            "address": self.address,
            "block_number": self.block_number,
            "native": None if self.native is None else self.native.to_dict(),
            "assets": [holding.to_dict() for holding in self.assets],
            "total_value_usd": None if total is None else format_fiat(total),
            "errors": dict(self.errors),
        }
