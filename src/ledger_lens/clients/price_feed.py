from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Iterable

import requests

from ..constants import COINGECKO_API_URL, REFERENCE_CURRENCY
from ..errors import RemoteAPIError
from ..logger import get_logger
from .base import FetchClient

logger = get_logger(__name__)


class CoinGeckoPriceFeed(FetchClient):
    """Batched USD price lookup through CoinGecko ``simple/price``."""

    source = "coingecko"

    def __init__(
        self,
        *,
        api_url: str = COINGECKO_API_URL,
        api_key: str | None = None,
        request_timeout: float = 15.0,
        session: requests.Session | None = None,
    ):
        headers = {"x-cg-demo-api-key": api_key} if api_key else None
        super().__init__(
            request_timeout=request_timeout, session=session, headers=headers
        )
        self._api_url = api_url.rstrip("/")

    async def fetch_prices(self, price_ids: Iterable[str]) -> dict[str, Decimal | None]:
        """Fetch the current USD price of every id in one request.

        Ids missing from the response map to None; only a failed request
        raises.
        """
        ids = sorted(set(price_ids))
        if not ids:
            return {}

        payload = await self.call(
            f"{self._api_url}/simple/price",
            {"ids": ",".join(ids), "vs_currencies": REFERENCE_CURRENCY},
        )
        if not isinstance(payload, dict):
            raise RemoteAPIError("Unexpected CoinGecko payload format", source=self.source)
        if "status" in payload and "error_message" in payload.get("status", {}):
            raise RemoteAPIError(payload["status"]["error_message"], source=self.source)

        prices: dict[str, Decimal | None] = {}
        for price_id in ids:
            entry = payload.get(price_id) or {}
            raw = entry.get(REFERENCE_CURRENCY) if isinstance(entry, dict) else None
            prices[price_id] = _to_decimal(raw)
            if prices[price_id] is None:
                logger.warning("No %s price returned for %s", REFERENCE_CURRENCY, price_id)
        return prices


def _to_decimal(raw: object) -> Decimal | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return None
    return value if value.is_finite() and value >= 0 else None
