from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Iterable, Protocol

from .cache import PriceCache
from .constants import NATIVE_ASSET
from .domain import AssetDescriptor, AssetHolding, PortfolioSnapshot
from .errors import FetchError, ValuationError
from .logger import get_logger
from .validation import validate_address, validate_block_range

logger = get_logger(__name__)


class BalanceSource(Protocol):
    async def get_native_balance(self, address: str, block_number: int) -> int: ...

    async def get_token_balance(
        self, token_address: str, holder: str, block_number: int
    ) -> int: ...


class PortfolioValuator:
    """Values an address's native and tracked token balances at one block."""

    def __init__(
        self,
        node: BalanceSource,
        prices: PriceCache,
        assets: Iterable[AssetDescriptor],
        *,
        native_asset: AssetDescriptor = NATIVE_ASSET,
    ):
        self._node = node
        self._prices = prices
        self._assets = [asset for asset in assets if not asset.is_native]
        self._native_asset = native_asset

    async def value_at(self, address: str, block_number: int) -> PortfolioSnapshot:
        """Build a :class:`PortfolioSnapshot` for ``address`` at ``block_number``.

        The native balance, each token balance and the price lookup run
        concurrently; a failing branch is recorded in ``errors`` and does not
        cancel the others. Tokens with a zero balance are left out.

        Raises:
            InvalidAddressError: If ``address`` is malformed.
            InvalidBlockRangeError: If ``block_number`` is negative.
            ValuationError: If no balance at all could be fetched.
        """
        address = validate_address(address)
        validate_block_range(block_number, block_number)
        symbols = [self._native_asset.symbol] + [asset.symbol for asset in self._assets]

        native_result, prices_result, *token_results = await asyncio.gather(
            self._node.get_native_balance(address, block_number),
            self._prices.get_prices(symbols),
            *[
                self._node.get_token_balance(
                    asset.contract_address, address, block_number  # type: ignore[arg-type]
                )
                for asset in self._assets
            ],
            return_exceptions=True,
        )

        errors: dict[str, str] = {}

        if isinstance(prices_result, BaseException):
            logger.warning("Price lookup failed: %s", prices_result)
            errors["prices"] = str(prices_result)
            prices: dict[str, Decimal | None] = {}
        else:
            prices = prices_result

        native: AssetHolding | None = None
        if isinstance(native_result, BaseException):
            self._raise_unexpected(native_result)
            logger.error(
                "Failed to fetch %s balance of %s at block %d: %s",
                self._native_asset.symbol,
                address,
                block_number,
                native_result,
            )
            errors[self._native_asset.symbol] = str(native_result)
        else:
            native = AssetHolding(
                asset=self._native_asset,
                balance_raw=native_result,
                price_usd=prices.get(self._native_asset.symbol),
            )

        holdings: list[AssetHolding] = []
        for asset, result in zip(self._assets, token_results):
            if isinstance(result, BaseException):
                self._raise_unexpected(result)
                logger.error(
                    "Failed to fetch %s balance of %s at block %d: %s",
                    asset.symbol,
                    address,
                    block_number,
                    result,
                )
                errors[asset.symbol] = str(result)
                continue
            if result == 0:
                continue
            holdings.append(
                AssetHolding(asset=asset, balance_raw=result, price_usd=prices.get(asset.symbol))
            )

        balance_failures = len([key for key in errors if key != "prices"])
        if balance_failures == len(self._assets) + 1:
            raise ValuationError(
                f"Could not fetch any balance for {address} at block {block_number}: "
                + "; ".join(f"{k}: {v}" for k, v in errors.items())
            )

        snapshot = PortfolioSnapshot(
            address=address,
            block_number=block_number,
            native=native,
            assets=tuple(holdings),
            errors=errors,
        )
        logger.info(
            "Valued %s at block %d: %d holdings, total=%s",
            address,
            block_number,
            len(snapshot.holdings),
            snapshot.total_value_usd,
        )
        return snapshot

    @staticmethod
    def _raise_unexpected(exc: BaseException) -> None:
        # Remote failures degrade the snapshot; anything else is a bug
        if not isinstance(exc, FetchError):
            raise exc
