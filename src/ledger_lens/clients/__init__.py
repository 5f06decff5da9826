from __future__ import annotations

from .base import FetchClient
from .etherscan import EtherscanClient, EtherscanRateLimitError, PageCursor
from .node import LedgerNode
from .price_feed import CoinGeckoPriceFeed

__all__ = [
    "CoinGeckoPriceFeed",
    "EtherscanClient",
    "EtherscanRateLimitError",
    "FetchClient",
    "LedgerNode",
    "PageCursor",
]
