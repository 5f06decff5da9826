from __future__ import annotations

import json
import os
from decimal import Decimal

import pytest
from typer.testing import CliRunner

from fakes import ADDRESS, FakeIndexer, FakeNode, FakePriceFeed, make_raw_tx
from ledger_lens import main as cli
from ledger_lens.cache import PriceCache
from ledger_lens.constants import GENESIS_TIMESTAMP, NATIVE_ASSET, TRACKED_ASSETS
from ledger_lens.errors import TransportError
from ledger_lens.service import AccountService

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    for key in list(os.environ):
        if key.startswith("LEDGER_LENS_"):
            monkeypatch.delenv(key)
    # restored on teardown even though --config writes os.environ
    monkeypatch.setenv("LEDGER_LENS_CONFIG", "")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


@pytest.fixture
def fake_service(monkeypatch):
    """Route every command to an AccountService backed by in-memory fakes."""
    node = FakeNode(
        [GENESIS_TIMESTAMP + 12 * height for height in range(50)],
        native_balance=10**18,
    )

    def build(state):
        prices = PriceCache(
            FakePriceFeed({"ethereum": Decimal("2000")}),
            [NATIVE_ASSET, *state.settings.assets],
        )
        return AccountService(
            state,
            node=node,
            indexer=FakeIndexer([make_raw_tx(block) for block in range(1, 6)]),
            prices=prices,
        )

    monkeypatch.setattr(cli, "AccountService", build)
    return node


def _invoke(*args: str):
    return runner.invoke(cli.app, ["--log-level", "CRITICAL", *args])


def test_show_config_redacts_secrets():
    result = _invoke("--etherscan-api-key", "secret-key", "--show-config")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["etherscan_api_key"] == "***redacted***"
    assert data["log_level"] == "CRITICAL"
    assert "secret-key" not in result.stdout


def test_config_file_option(tmp_path):
    config_path = tmp_path / "lens.toml"
    config_path.write_text('[ledger_lens]\nmax_pages = 4\n')

    result = _invoke("--config", str(config_path), "--show-config")

    assert result.exit_code == 0
    assert json.loads(result.stdout)["max_pages"] == 4


def test_balance_at_block(fake_service):
    result = _invoke("balance", ADDRESS, "--block", "10")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["block_number"] == 10
    assert data["snapshot"]["native"]["balance"] == "1.000000"
    assert data["snapshot"]["total_value_usd"] == "2000.00"


def test_balance_needs_exactly_one_of_date_or_block(fake_service):
    result = _invoke("balance", ADDRESS, "--block", "10", "--date", "2015-08-01")

    assert result.exit_code == 2


def test_balance_reports_failed_branch(fake_service):
    fake_service.native_balance = TransportError("node down")
    fake_service.token_balances = {}

    result = _invoke("--etherscan-api-key", "k", "balance", ADDRESS, "--block", "10")

    # all tracked token balances are zero, so only the native branch matters
    assert result.exit_code == 0
    assert json.loads(result.stdout)["snapshot"]["errors"]["ETH"] == "node down"


def test_transactions_requires_api_key(fake_service):
    result = _invoke("transactions", ADDRESS)

    assert result.exit_code == 2


def test_transactions_json(fake_service):
    result = _invoke("--etherscan-api-key", "k", "transactions", ADDRESS)

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["count"] == 5
    assert [tx["block_number"] for tx in data["transactions"]] == [5, 4, 3, 2, 1]
    assert data["eth_price_usd"] == "2000.00"


def test_transactions_stream(fake_service):
    result = _invoke("--etherscan-api-key", "k", "transactions", ADDRESS, "--stream")

    assert result.exit_code == 0
    events = [json.loads(line) for line in result.stdout.splitlines() if line]
    assert [event["type"] for event in events] == ["initial", "batch", "complete"]
    assert events[-1]["summary"]["count"] == 5


def test_invalid_address_is_usage_error(fake_service):
    result = _invoke("--etherscan-api-key", "k", "transactions", "not-an-address")

    assert result.exit_code == 2


def test_resolve_block(fake_service):
    result = _invoke("resolve-block", "2015-07-30T15:26:30Z")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    # 17 seconds after genesis
    assert data["block_number"] == 2
    assert data["chain_head"] == 49


def test_balance_with_no_reachable_branch_exits_with_error(fake_service):
    failure = TransportError("node down")
    fake_service.native_balance = failure
    fake_service.token_balances = {
        asset.contract_address.lower(): failure for asset in TRACKED_ASSETS.values()
    }

    result = _invoke("balance", ADDRESS, "--block", "10")

    assert result.exit_code == 1
