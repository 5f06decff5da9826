"""Etherscan account API client for fetching normal transactions.

This module provides a client for the Etherscan v2 ``account/txlist`` endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, TypedDict

import requests

from ..constants import CHAIN_ID, ETHERSCAN_API_V2_URL, INDEXER_MAX_PAGE_SIZE
from ..errors import RemoteAPIError
from ..logger import get_logger
from .base import FetchClient

logger = get_logger(__name__)

NO_DATA_MESSAGES = ("no transactions found", "no records found")


class EtherscanRateLimitError(RemoteAPIError):
    """Raised when Etherscan returns a rate limit error."""


class EtherscanTransaction(TypedDict, total=False):
    """Raw Etherscan API response for a single normal transaction."""

    blockNumber: str
    timeStamp: str
    hash: str
    nonce: str
    blockHash: str
    transactionIndex: str
    # "from" is a keyword; read it with raw.get("from")
    to: str
    value: str
    gas: str
    gasPrice: str
    isError: str
    txreceipt_status: str
    input: str
    contractAddress: str
    cumulativeGasUsed: str
    gasUsed: str
    confirmations: str
    methodId: str
    functionName: str


@dataclass(frozen=True)
class PageCursor:
    """Position of one indexer request within an aggregation."""

    page: int
    page_size: int = INDEXER_MAX_PAGE_SIZE
    sort: Literal["asc", "desc"] = "desc"

    def next(self) -> "PageCursor":
        return PageCursor(page=self.page + 1, page_size=self.page_size, sort=self.sort)


def is_no_data(payload: dict[str, Any]) -> bool:
    """True when Etherscan signals an empty result rather than a failure."""
    message = str(payload.get("message", "")).strip().lower()
    result = payload.get("result")
    if any(message.startswith(marker) for marker in NO_DATA_MESSAGES):
        return True
    if isinstance(result, str):
        return any(result.strip().lower().startswith(m) for m in NO_DATA_MESSAGES)
    return False


class EtherscanClient(FetchClient):
    """Client for the Etherscan API v2 account module.

    Interprets the ``status``/``message``/``result`` envelope:
    - ``status == "1"`` returns the result list
    - "No transactions found" returns an empty list
    - rate limit messages raise :class:`EtherscanRateLimitError`
    - anything else raises :class:`RemoteAPIError`
    """

    source = "etherscan"

    def __init__(
        self,
        api_key: str,
        chain_id: int = CHAIN_ID,
        *,
        api_url: str = ETHERSCAN_API_V2_URL,
        request_timeout: float = 15.0,
        session: requests.Session | None = None,
    ):
        """Initialize the Etherscan client.

        Args:
            api_key: Etherscan API key
            chain_id: Chain ID for the network (1 for mainnet)
            api_url: Base API URL (defaults to Etherscan v2 API)
            request_timeout: HTTP request timeout in seconds
            session: Optional pre-configured requests session
        """
        super().__init__(request_timeout=request_timeout, session=session)
        self._api_key = api_key
        self._chain_id = chain_id
        self._api_url = api_url

    async def query(self, params: dict[str, Any]) -> list[EtherscanTransaction]:
        """Run one API call and unwrap its envelope."""
        payload = await self.call(
            self._api_url,
            {"chainid": str(self._chain_id), **params, "apikey": self._api_key},
        )
        if not isinstance(payload, dict):
            raise RemoteAPIError("Unexpected Etherscan payload format", source=self.source)

        status = str(payload.get("status", "")).strip()
        result = payload.get("result")

        if status != "1":
            if is_no_data(payload):
                return []
            detail = result if isinstance(result, str) and result else payload.get("message")
            detail = str(detail or "unknown error")
            if "rate limit" in detail.lower():
                raise EtherscanRateLimitError(detail, source=self.source)
            raise RemoteAPIError(detail, source=self.source)

        if not isinstance(result, list):
            raise RemoteAPIError(
                f"Unexpected Etherscan result: {result!r}", source=self.source
            )
        return result

    async def fetch_transactions_page(
        self,
        address: str,
        start_block: int,
        end_block: int,
        cursor: PageCursor,
    ) -> list[EtherscanTransaction]:
        """Fetch one page of normal transactions for ``address``.

        Returns:
            Raw records, empty when the indexer has no (further) data.
        """
        records = await self.query(
            {
                "module": "account",
                "action": "txlist",
                "address": address,
                "startblock": str(start_block),
                "endblock": str(end_block),
                "page": cursor.page,
                "offset": cursor.page_size,
                "sort": cursor.sort,
            }
        )
        logger.debug(
            "Etherscan txlist: address=%s blocks=[%d,%d] page=%d returned=%d",
            address,
            start_block,
            end_block,
            cursor.page,
            len(records),
        )
        return records
