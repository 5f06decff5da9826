"""CLI entrypoint for ledger-lens."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Annotated

import typer

from .aggregator import QueueSink
from .errors import LedgerLensError, ValidationError
from .logger import setup_logging
from .report import render_snapshot, render_transactions
from .service import AccountService
from .settings import LensSettings
from .state import AppState

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Transaction history and historical balances for Ethereum addresses.",
)


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("ledger_lens")


def _state(ctx: typer.Context) -> AppState:
    return ctx.obj


def _echo_json(data: dict) -> None:
    typer.echo(json.dumps(data, indent=2))


def _run(coro):
    """Run a coroutine, turning library errors into CLI errors."""
    try:
        return asyncio.run(coro)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except LedgerLensError as exc:
        typer.secho(f"Error: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [ledger_lens] table).",
        ),
    ] = None,
    rpc_url: Annotated[
        str | None,
        typer.Option("--rpc-url", help="Ethereum JSON-RPC endpoint."),
    ] = None,
    etherscan_api_key: Annotated[
        str | None,
        typer.Option(
            "--etherscan-api-key",
            help="Etherscan API key (prefer LEDGER_LENS_ETHERSCAN_API_KEY).",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Load configuration shared by every command."""
    if config_path:
        os.environ["LEDGER_LENS_CONFIG"] = str(config_path)

    init_kwargs: dict[str, str] = {}
    if rpc_url is not None:
        init_kwargs["rpc_url"] = rpc_url
    if etherscan_api_key is not None:
        init_kwargs["etherscan_api_key"] = etherscan_api_key
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = LensSettings(**init_kwargs)
    setup_logging(settings.log_level)

    if show_config:
        _echo_json(settings.as_safe_dict())
        raise typer.Exit(code=0)

    ctx.obj = AppState(settings=settings, logger=_build_logger())
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@app.command()
def transactions(
    ctx: typer.Context,
    address: Annotated[str, typer.Argument(help="Address to list transactions for.")],
    start_block: Annotated[
        int | None, typer.Option("--start-block", help="First block of the range.")
    ] = None,
    start_date: Annotated[
        str | None,
        typer.Option("--date", help="Start from the first block at or after this date (YYYY-MM-DD)."),
    ] = None,
    end_block: Annotated[
        int | None,
        typer.Option("--end-block", help="Last block of the range (defaults to the chain head)."),
    ] = None,
    stream: Annotated[
        bool, typer.Option("--stream", help="Print events as JSON lines while paging.")
    ] = False,
    table: Annotated[
        bool, typer.Option("--table", help="Render a table instead of JSON.")
    ] = False,
):
    """List the transactions of ADDRESS within a block range."""
    if start_block is not None and start_date is not None:
        raise typer.BadParameter("Use either --start-block or --date, not both.")
    if _state(ctx).settings.etherscan_api_key is None:
        raise typer.BadParameter(
            "An Etherscan API key is required (LEDGER_LENS_ETHERSCAN_API_KEY or --etherscan-api-key)."
        )

    service = AccountService(_state(ctx))

    if stream:

        async def _stream() -> None:
            sink = QueueSink()
            producer = asyncio.create_task(
                service.stream_transactions(
                    address,
                    sink,
                    start_block=start_block,
                    start_date=start_date,
                    end_block=end_block,
                )
            )
            # ends the loop below if the producer fails before a terminal event
            producer.add_done_callback(lambda _: sink.close())
            try:
                async for event in sink:
                    typer.echo(json.dumps(event.to_dict()))
            finally:
                sink.close()
                await producer

        _run(_stream())
        return

    history = _run(
        service.transaction_history(
            address, start_block=start_block, start_date=start_date, end_block=end_block
        )
    )
    if table:
        render_transactions(history.result, history.eth_price)
    else:
        _echo_json(history.to_dict())


@app.command()
def balance(
    ctx: typer.Context,
    address: Annotated[str, typer.Argument(help="Address to value.")],
    at_date: Annotated[
        str | None, typer.Option("--date", help="Value at the first block of this date.")
    ] = None,
    block: Annotated[
        int | None, typer.Option("--block", help="Value at this block number.")
    ] = None,
    table: Annotated[
        bool, typer.Option("--table", help="Render a table instead of JSON.")
    ] = False,
):
    """Value the ETH and token holdings of ADDRESS at a date or block."""
    if (at_date is None) == (block is None):
        raise typer.BadParameter("Exactly one of --date or --block is required.")

    service = AccountService(_state(ctx))
    if at_date is not None:
        result = _run(service.balance_at_date(address, at_date))
        snapshot = result.snapshot
        data = result.to_dict()
    else:
        snapshot = _run(service.balance_at_block(address, block))  # type: ignore[arg-type]
        data = {"block_number": snapshot.block_number, "snapshot": snapshot.to_dict()}

    if table:
        render_snapshot(snapshot)
    else:
        _echo_json(data)


@app.command("resolve-block")
def resolve_block(
    ctx: typer.Context,
    when: Annotated[str, typer.Argument(help="Date or ISO-8601 datetime (UTC).")],
):
    """Print the first block mined at or after WHEN."""
    service = AccountService(_state(ctx))
    resolved = _run(service.resolve_block(when))
    _echo_json(
        {
            "block_number": resolved.block_number,
            "target_timestamp": resolved.target_timestamp,
            "chain_head": resolved.chain_head,
            "lookups": resolved.lookups,
        }
    )


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
