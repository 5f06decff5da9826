from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from fakes import ADDRESS, make_raw_tx
from ledger_lens.clients import (
    CoinGeckoPriceFeed,
    EtherscanClient,
    EtherscanRateLimitError,
    PageCursor,
)
from ledger_lens.errors import RemoteAPIError, TransportError


def _response(payload=None, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


def _session(response=None, *, error: Exception | None = None) -> MagicMock:
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return session


class TestEtherscanClient:
    @pytest.mark.asyncio
    async def test_page_request_parameters(self):
        session = _session(
            _response({"status": "1", "message": "OK", "result": [make_raw_tx(5)]})
        )
        client = EtherscanClient("KEY", 1, api_url="https://indexer.test/v2/api", session=session)

        records = await client.fetch_transactions_page(
            ADDRESS, 10, 20, PageCursor(page=2, page_size=100)
        )

        assert len(records) == 1
        args, kwargs = session.get.call_args
        assert args[0] == "https://indexer.test/v2/api"
        params = kwargs["params"]
        assert params["module"] == "account"
        assert params["action"] == "txlist"
        assert params["address"] == ADDRESS
        assert params["startblock"] == "10"
        assert params["endblock"] == "20"
        assert params["page"] == 2
        assert params["offset"] == 100
        assert params["sort"] == "desc"
        assert params["chainid"] == "1"
        assert params["apikey"] == "KEY"
        assert kwargs["timeout"] == 15.0

    @pytest.mark.asyncio
    async def test_no_transactions_is_empty(self):
        session = _session(
            _response({"status": "0", "message": "No transactions found", "result": []})
        )
        client = EtherscanClient("KEY", session=session)

        assert await client.fetch_transactions_page(ADDRESS, 0, 1, PageCursor(page=1)) == []

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        session = _session(
            _response(
                {
                    "status": "0",
                    "message": "NOTOK",
                    "result": "Max rate limit reached, please use API Key for higher rate limit",
                }
            )
        )
        client = EtherscanClient("KEY", session=session)

        with pytest.raises(EtherscanRateLimitError):
            await client.fetch_transactions_page(ADDRESS, 0, 1, PageCursor(page=1))

    @pytest.mark.asyncio
    async def test_page_window_error_is_flagged(self):
        session = _session(
            _response(
                {
                    "status": "0",
                    "message": "NOTOK",
                    "result": "Result window is too large, PageNo x Offset size must be less than or equal to 10000",
                }
            )
        )
        client = EtherscanClient("KEY", session=session)

        with pytest.raises(RemoteAPIError) as excinfo:
            await client.fetch_transactions_page(ADDRESS, 0, 1, PageCursor(page=11))

        assert excinfo.value.is_page_window_error
        assert excinfo.value.source == "etherscan"

    @pytest.mark.asyncio
    async def test_invalid_key_is_remote_error(self):
        session = _session(
            _response({"status": "0", "message": "NOTOK", "result": "Invalid API Key"})
        )
        client = EtherscanClient("BAD", session=session)

        with pytest.raises(RemoteAPIError, match="Invalid API Key") as excinfo:
            await client.fetch_transactions_page(ADDRESS, 0, 1, PageCursor(page=1))

        assert not excinfo.value.is_page_window_error

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        client = EtherscanClient("KEY", session=_session(error=requests.Timeout("slow")))

        with pytest.raises(TransportError, match="timed out"):
            await client.fetch_transactions_page(ADDRESS, 0, 1, PageCursor(page=1))

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_error(self):
        client = EtherscanClient(
            "KEY", session=_session(error=requests.ConnectionError("refused"))
        )

        with pytest.raises(TransportError):
            await client.fetch_transactions_page(ADDRESS, 0, 1, PageCursor(page=1))

    @pytest.mark.asyncio
    async def test_service_unavailable_is_transport_error(self):
        client = EtherscanClient("KEY", session=_session(_response(status_code=503)))

        with pytest.raises(TransportError, match="503"):
            await client.fetch_transactions_page(ADDRESS, 0, 1, PageCursor(page=1))

    @pytest.mark.asyncio
    async def test_forbidden_is_remote_error(self):
        client = EtherscanClient("KEY", session=_session(_response(status_code=403)))

        with pytest.raises(RemoteAPIError, match="403"):
            await client.fetch_transactions_page(ADDRESS, 0, 1, PageCursor(page=1))

    @pytest.mark.asyncio
    async def test_non_json_body_is_transport_error(self):
        response = _response()
        response.json.side_effect = ValueError("Expecting value")
        client = EtherscanClient("KEY", session=_session(response))

        with pytest.raises(TransportError, match="non-JSON"):
            await client.fetch_transactions_page(ADDRESS, 0, 1, PageCursor(page=1))


def test_page_cursor_advances():
    cursor = PageCursor(page=1, page_size=50, sort="asc")

    assert cursor.next() == PageCursor(page=2, page_size=50, sort="asc")


class TestCoinGeckoPriceFeed:
    @pytest.mark.asyncio
    async def test_batched_lookup(self):
        session = _session(
            _response({"ethereum": {"usd": 3012.55}, "tether": {"usd": 1.0}})
        )
        feed = CoinGeckoPriceFeed(api_url="https://prices.test/api/v3/", session=session)

        prices = await feed.fetch_prices(["tether", "ethereum", "ethereum"])

        assert prices == {"ethereum": Decimal("3012.55"), "tether": Decimal("1.0")}
        assert session.get.call_count == 1
        args, kwargs = session.get.call_args
        assert args[0] == "https://prices.test/api/v3/simple/price"
        assert kwargs["params"] == {"ids": "ethereum,tether", "vs_currencies": "usd"}

    @pytest.mark.asyncio
    async def test_missing_id_maps_to_none(self):
        session = _session(_response({"ethereum": {"usd": 2000}}))
        feed = CoinGeckoPriceFeed(session=session)

        prices = await feed.fetch_prices(["ethereum", "unknown-coin"])

        assert prices["ethereum"] == Decimal("2000")
        assert prices["unknown-coin"] is None

    @pytest.mark.asyncio
    async def test_empty_ids_skip_request(self):
        session = _session()
        feed = CoinGeckoPriceFeed(session=session)

        assert await feed.fetch_prices([]) == {}
        session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_status_payload(self):
        session = _session(
            _response({"status": {"error_code": 10002, "error_message": "Missing API key"}})
        )
        feed = CoinGeckoPriceFeed(session=session)

        with pytest.raises(RemoteAPIError, match="Missing API key"):
            await feed.fetch_prices(["ethereum"])

    @pytest.mark.asyncio
    async def test_rate_limited_is_transport_error(self):
        feed = CoinGeckoPriceFeed(session=_session(_response(status_code=429)))

        with pytest.raises(TransportError):
            await feed.fetch_prices(["ethereum"])

    def test_api_key_header(self):
        session = MagicMock()
        CoinGeckoPriceFeed(api_key="demo-key", session=session)

        session.headers.update.assert_any_call({"x-cg-demo-api-key": "demo-key"})
