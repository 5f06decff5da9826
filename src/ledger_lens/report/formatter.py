"""Rich console rendering for snapshots and transaction lists."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table

from ..aggregator import AggregationResult
from ..domain import PortfolioSnapshot
from ..units import format_fiat, format_units


def _truncate_address(address: str) -> str:
    return f"{address[:10]}...{address[-4:]}"


def _usd(value: Decimal | None) -> str:
    return "[dim]<N/A>[/]" if value is None else f"${format_fiat(value)}"


def render_snapshot(snapshot: PortfolioSnapshot, console: Console | None = None) -> None:
    """Print the holdings of a snapshot as a table."""
    console = console or Console()

    table = Table(expand=True)
    table.add_column("Asset", style="cyan", no_wrap=True)
    table.add_column("Balance", justify="right")
    table.add_column("Price (USD)", justify="right", style="yellow")
    table.add_column("Value (USD)", justify="right", style="green")

    for holding in snapshot.holdings:
        table.add_row(
            holding.asset.symbol,
            format_units(holding.balance_raw, holding.asset.decimals),
            _usd(holding.price_usd),
            _usd(holding.value_usd),
        )
    table.add_row("[bold]TOTAL[/]", "", "", _usd(snapshot.total_value_usd), style="bold")

    parts: list = [table]
    if snapshot.errors:
        failed = ", ".join(f"{name}: {message}" for name, message in snapshot.errors.items())
        parts.append(f"[red]Unavailable:[/] {failed}")

    console.print(
        Panel(
            Group(*parts),
            title=f"[bold]{_truncate_address(snapshot.address)} @ block {snapshot.block_number}[/]",
            border_style="cyan",
        )
    )


def render_transactions(
    result: AggregationResult,
    eth_price: Decimal | None = None,
    console: Console | None = None,
) -> None:
    """Print aggregated transactions, newest first."""
    console = console or Console()

    table = Table(expand=True, show_lines=False)
    table.add_column("Block", justify="right", style="dim")
    table.add_column("Time (UTC)", no_wrap=True)
    table.add_column("Hash", style="cyan", no_wrap=True)
    table.add_column("Dir", no_wrap=True)
    table.add_column("From")
    table.add_column("To")
    table.add_column("Value (ETH)", justify="right")
    table.add_column("Value (USD)", justify="right", style="green")
    table.add_column("Fee (ETH)", justify="right", style="yellow")

    for tx in result.transactions:
        when = datetime.fromtimestamp(tx.timestamp, timezone.utc).strftime("%Y-%m-%d %H:%M")
        table.add_row(
            str(tx.block_number),
            when,
            _truncate_address(tx.hash),
            tx.direction(result.address),
            _truncate_address(tx.from_address),
            "[dim]<create>[/]" if tx.is_contract_creation else _truncate_address(tx.to_address),  # type: ignore[arg-type]
            f"[red]{tx.value}[/]" if tx.is_error else tx.value,
            _usd(tx.value_usd(eth_price)),
            tx.fee,
        )

    flags = []
    if result.reached_limit:
        flags.append("limit reached")
    if result.truncated:
        flags.append("truncated")
    if result.partial:
        flags.append("partial")
    status = f" [yellow]({', '.join(flags)})[/]" if flags else ""

    console.print(
        Panel(
            table,
            title=f"[bold]{result.count} transactions, blocks {result.start_block}-{result.end_block}{status}[/]",
            border_style="blue",
        )
    )
