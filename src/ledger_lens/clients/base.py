"""HTTP plumbing shared by the indexer and price feed clients."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import requests

from ..errors import RemoteAPIError, TransportError
from ..logger import get_logger

logger = get_logger(__name__)

# Statuses worth re-invoking later; surfaced as transport failures
TRANSIENT_HTTP_STATUSES = {408, 425, 429, 500, 502, 503, 504}


class FetchClient:
    """Blocking ``requests`` session with a fixed timeout, awaited off-loop.

    Every failure surfaces as either :class:`TransportError` (timeouts,
    connection problems, transient HTTP statuses) or :class:`RemoteAPIError`
    (any other failure response). The client keeps no state between calls
    other than the pooled session; pacing is up to the caller.
    """

    source = "http"

    def __init__(
        self,
        *,
        request_timeout: float = 15.0,
        session: requests.Session | None = None,
        headers: Mapping[str, str] | None = None,
    ):
        self._request_timeout = request_timeout
        self._session = session or requests.Session()
        self._session.headers.update({"accept": "application/json"})
        if headers:
            self._session.headers.update(headers)

    async def call(self, endpoint: str, params: Mapping[str, Any]) -> Any:
        """GET ``endpoint`` with ``params`` and return the decoded JSON body."""
        return await asyncio.to_thread(self._get, endpoint, params)

    def _get(self, endpoint: str, params: Mapping[str, Any]) -> Any:
        try:
            response = self._session.get(
                endpoint,
                params=dict(params),
                timeout=self._request_timeout,
            )
        except requests.Timeout as exc:
            raise TransportError(
                f"{self.source} request timed out after {self._request_timeout}s"
            ) from exc
        except requests.RequestException as exc:
            raise TransportError(f"{self.source} request failed: {exc}") from exc

        if response.status_code in TRANSIENT_HTTP_STATUSES:
            raise TransportError(
                f"{self.source} returned HTTP {response.status_code}"
            )
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise RemoteAPIError(
                f"{self.source} returned HTTP {response.status_code}",
                source=self.source,
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"{self.source} returned a non-JSON body") from exc
