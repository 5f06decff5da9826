"""Read-only access to an Ethereum node over JSON-RPC."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, TypeVar

import requests
from eth_typing import URI
from web3 import Web3
from web3.exceptions import (
    BadFunctionCallOutput,
    BlockNotFound,
    ContractLogicError,
    ProviderConnectionError,
    Web3Exception,
)

from ..abi import load_erc20_abi
from ..errors import RemoteAPIError, TransportError
from ..logger import get_logger
from .base import TRANSIENT_HTTP_STATUSES

logger = get_logger(__name__)

T = TypeVar("T")


class LedgerNode:
    """Thin async wrapper over a ``Web3`` HTTP provider.

    Blocking web3 calls run in a worker thread. Connection failures,
    timeouts and transient HTTP statuses (429, 5xx) raise
    :class:`TransportError`; failures reported by the node
    (unknown block, reverted view call, JSON-RPC error) raise
    :class:`RemoteAPIError`.
    """

    source = "node"

    def __init__(
        self,
        rpc_url: str | None = None,
        *,
        request_timeout: float = 15.0,
        w3: Web3 | None = None,
    ):
        if w3 is None:
            if rpc_url is None:
                raise ValueError("rpc_url or w3 is required")
            w3 = Web3(
                Web3.HTTPProvider(
                    URI(rpc_url), request_kwargs={"timeout": request_timeout}
                )
            )
        self.w3 = w3

    async def _rpc(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except (requests.Timeout, requests.ConnectionError, ProviderConnectionError) as exc:
            raise TransportError(f"Node request failed: {exc}") from exc
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            if status in TRANSIENT_HTTP_STATUSES:
                raise TransportError(f"Node returned HTTP {status}") from exc
            raise RemoteAPIError(f"Node returned HTTP {status}", source=self.source) from exc
        except BlockNotFound as exc:
            raise RemoteAPIError(f"Block not found: {exc}", source=self.source) from exc
        except (ContractLogicError, BadFunctionCallOutput) as exc:
            raise RemoteAPIError(f"Contract call failed: {exc}", source=self.source) from exc
        except (Web3Exception, requests.RequestException, ValueError) as exc:
            raise RemoteAPIError(f"Node error: {exc}", source=self.source) from exc

    async def get_block_height(self) -> int:
        """Current chain head."""
        return int(await self._rpc(lambda: self.w3.eth.block_number))

    async def get_block_timestamp(self, block_number: int) -> int:
        block = await self._rpc(self.w3.eth.get_block, block_number)
        return int(block["timestamp"])

    async def get_native_balance(self, address: str, block_number: int) -> int:
        """ETH balance in wei of ``address`` at ``block_number``."""
        balance = await self._rpc(
            self.w3.eth.get_balance,
            Web3.to_checksum_address(address),
            block_identifier=block_number,
        )
        return int(balance)

    async def get_token_balance(
        self, token_address: str, holder: str, block_number: int
    ) -> int:
        """ERC-20 ``balanceOf(holder)`` evaluated at ``block_number``."""
        contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(token_address), abi=load_erc20_abi()
        )
        balance = await self._rpc(
            contract.functions.balanceOf(Web3.to_checksum_address(holder)).call,
            block_identifier=block_number,
        )
        return int(balance)
