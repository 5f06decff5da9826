from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from web3 import Web3

from ..units import (
    GWEI_DECIMALS,
    compute_fee,
    format_fiat,
    format_units,
    to_decimal,
)


@dataclass(frozen=True)
class TransactionRecord:
    """Normalized indexer transaction.

    Amounts stay in wei; the string properties round only for display.
    """

    hash: str
    from_address: str
    to_address: str | None  # None for contract creation
    value_wei: int
    gas_price_wei: int
    gas_used: int
    block_number: int
    timestamp: int
    is_error: bool
    contract_address: str | None = None
    method_id: str | None = None
    function_name: str | None = None

    @property
    def fee_wei(self) -> int:
        return compute_fee(self.gas_price_wei, self.gas_used)

    @property
    def value(self) -> str:
        return format_units(self.value_wei)

    @property
    def fee(self) -> str:
        return format_units(self.fee_wei)

    @property
    def gas_price_gwei(self) -> str:
        return format_units(self.gas_price_wei, GWEI_DECIMALS, places=2)

    @property
    def is_contract_creation(self) -> bool:
        return self.to_address is None

    def direction(self, address: str) -> str:
        """Classify as ``in``, ``out`` or ``self`` relative to ``address``."""
        me = address.lower()
        sent = self.from_address.lower() == me
        received = self.to_address is not None and self.to_address.lower() == me
        if sent and received:
            return "self"
        return "out" if sent else "in"

    def value_usd(self, eth_price: Decimal | None) -> Decimal | None:
        if eth_price is None:
            return None
        return to_decimal(self.value_wei) * eth_price

    def to_dict(
        self, eth_price: Decimal | None = None, owner: str | None = None
    ) -> dict[str, Any]:
        """Serialize for output. ``direction`` is set relative to ``owner`` when given."""
        value_usd = self.value_usd(eth_price)
        return {
            "hash": self.hash,
            "from": self.from_address,
            "to": self.to_address,
            "direction": None if owner is None else self.direction(owner),
            "value": self.value,
            "value_wei": str(self.value_wei),
            "value_usd": None if value_usd is None else format_fiat(value_usd),
            "gas_price_gwei": self.gas_price_gwei,
            "gas_used": self.gas_used,
            "fee": self.fee,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "is_error": self.is_error,
            "contract_address": self.contract_address,
            "function_name": self.function_name,
        }


def _int_field(raw: Mapping[str, Any], key: str) -> int:
    value = raw.get(key)
    if value in (None, ""):
        return 0
    text = str(value)
    return int(text, 16) if text.startswith("0x") else int(text)


def _address_field(raw: Mapping[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if not value:
        return None
    return Web3.to_checksum_address(value)


def normalize_transaction(raw: Mapping[str, Any]) -> TransactionRecord:
    """Convert a raw Etherscan ``txlist`` entry into a :class:`TransactionRecord`.

    Raises:
        ValueError: If a required field is missing or not numeric.
    """
    tx_hash = raw.get("hash")
    if not tx_hash:
        raise ValueError("Transaction record has no hash")
    from_address = _address_field(raw, "from")
    if from_address is None:
        raise ValueError(f"Transaction {tx_hash} has no sender")

    return TransactionRecord(
        hash=str(tx_hash),
        from_address=from_address,
        to_address=_address_field(raw, "to"),
        value_wei=_int_field(raw, "value"),
        gas_price_wei=_int_field(raw, "gasPrice"),
        gas_used=_int_field(raw, "gasUsed"),
        block_number=_int_field(raw, "blockNumber"),
        timestamp=_int_field(raw, "timeStamp"),
        is_error=str(raw.get("isError", "0")) == "1",
        contract_address=_address_field(raw, "contractAddress"),
        method_id=raw.get("methodId") or None,
        function_name=raw.get("functionName") or None,
    )
