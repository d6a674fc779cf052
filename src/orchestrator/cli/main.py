"""vault-orchestrator command-line interface."""

import asyncio
from decimal import Decimal, InvalidOperation
from enum import Enum

import typer
from eth_account import Account
from rich.console import Console
from rich.table import Table

from orchestrator import __version__
from orchestrator.core.config import get_settings
from orchestrator.core.exceptions import OrchestratorError
from orchestrator.core.logging import setup_logging
from orchestrator.infrastructure.blockchain.contracts import ContractManager
from orchestrator.services.bridge.transport import BridgeState, Chain
from orchestrator.services.orchestrator import (
    Orchestrator,
    create_chain_contexts,
    create_clients,
    create_ledger,
    create_transport,
)

app = typer.Typer(
    name="vault-orchestrator",
    help="Cross-chain vault settlement orchestrator",
    add_completion=False,
)

console = Console()


class Direction(str, Enum):
    """Manual bridge direction."""

    TO_DESTINATION = "to-destination"
    TO_SOURCE = "to-source"


def to_base_units(amount: str, decimals: int) -> int:
    """Convert a human amount ("5.25") to integer base units."""
    try:
        value = Decimal(amount)
    except InvalidOperation:
        raise typer.BadParameter(f"not a number: {amount}")
    base = value * (Decimal(10) ** decimals)
    if value <= 0 or base != base.to_integral_value():
        raise typer.BadParameter(f"amount must be positive with at most {decimals} decimals")
    return int(base)


def format_units(amount: int, decimals: int) -> str:
    return f"{Decimal(amount) / (Decimal(10) ** decimals):f}"


def _fail(error: Exception) -> None:
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


@app.command()
def watch():
    """Run the orchestrator: backfill, then watch and settle until stopped."""
    settings = get_settings()
    setup_logging(settings)
    try:
        asyncio.run(Orchestrator(settings).run())
    except OrchestratorError as e:
        _fail(e)


@app.command()
def bridge(
    amount: str = typer.Argument(..., help="Amount in asset units, e.g. 5 or 2.5"),
    direction: Direction = typer.Option(
        Direction.TO_DESTINATION, "--direction", "-d", help="Transfer direction"
    ),
):
    """Run a single bridge transfer outside the settlement pipelines."""
    settings = get_settings()
    setup_logging(settings)
    base_amount = to_base_units(amount, settings.asset_decimals)

    if direction == Direction.TO_DESTINATION:
        source, destination = Chain.SOURCE, Chain.DESTINATION
    else:
        source, destination = Chain.DESTINATION, Chain.SOURCE

    async def run():
        src_ctx, dst_ctx = create_chain_contexts(settings)
        transport = create_transport(settings, src_ctx, dst_ctx)
        try:
            return await transport.transfer(base_amount, source, destination)
        finally:
            await transport.close()

    try:
        result = asyncio.run(run())
    except OrchestratorError as e:
        _fail(e)

    table = Table(title=f"Bridge {amount} {source.value} -> {destination.value}")
    table.add_column("Step", style="cyan")
    table.add_column("State")
    table.add_column("Tx hash", style="dim")
    table.add_column("Error", style="red")
    for step in result.steps:
        table.add_row(step.name, step.state.value, step.tx_hash or "", step.error or "")
    console.print(table)

    if result.state != BridgeState.SUCCESS:
        raise typer.Exit(1)


@app.command()
def status(request_id: str = typer.Argument(..., help="Vault request ID (0x bytes32)")):
    """Show the ledger history of a request."""
    settings = get_settings()

    async def load():
        engine, ledger = await create_ledger(settings)
        try:
            return (
                await ledger.deposit_history(request_id),
                await ledger.redemption_history(request_id),
            )
        finally:
            await engine.dispose()

    deposits, redemptions = asyncio.run(load())
    if not deposits and not redemptions:
        console.print(f"[yellow]No ledger entries for {request_id}[/yellow]")
        raise typer.Exit(1)

    if deposits:
        table = Table(title=f"Deposit {request_id}")
        for column in ("Time", "Status", "Retries", "Withdraw", "Bridge", "Deploy", "Error"):
            table.add_column(column)
        for r in deposits:
            table.add_row(
                str(r.updated_at or ""),
                r.status.value,
                str(r.retry_count),
                r.withdraw_tx_hash or "",
                r.bridge_tx_hash or "",
                r.destination_tx_hash or "",
                r.last_error or "",
            )
        console.print(table)

    if redemptions:
        table = Table(title=f"Redemption {request_id}")
        for column in ("Time", "Status", "Retries", "Withdraw", "Bridge", "Complete", "Error"):
            table.add_column(column)
        for r in redemptions:
            table.add_row(
                str(r.updated_at or ""),
                r.status.value,
                str(r.retry_count),
                r.withdraw_tx_hash or "",
                r.bridge_tx_hash or "",
                r.complete_tx_hash or "",
                r.last_error or "",
            )
        console.print(table)


@app.command()
def pending(
    abandoned: bool = typer.Option(
        False, "--abandoned", help="Show permanently failed requests instead"
    ),
):
    """List unfinished (or permanently failed) settlements."""
    settings = get_settings()
    max_retries = settings.max_retries

    async def load():
        engine, ledger = await create_ledger(settings)
        try:
            if abandoned:
                return (
                    await ledger.abandoned_deposits(max_retries),
                    await ledger.abandoned_redemptions(max_retries),
                )
            return (
                await ledger.pending_deposits(max_retries),
                await ledger.pending_redemptions(max_retries),
            )
        finally:
            await engine.dispose()

    deposits, redemptions = asyncio.run(load())

    table = Table(title="Abandoned settlements" if abandoned else "Pending settlements")
    table.add_column("Direction", style="cyan")
    table.add_column("Request ID", style="yellow")
    table.add_column("Amount")
    table.add_column("Status")
    table.add_column("Retries")
    table.add_column("Last error", style="red")
    for direction, records in (("deposit", deposits), ("redemption", redemptions)):
        for r in records:
            table.add_row(
                direction,
                r.request_id,
                format_units(r.amount, settings.asset_decimals),
                r.status.value,
                f"{r.retry_count}/{max_retries}",
                r.last_error or "",
            )

    if not deposits and not redemptions:
        console.print("[green]Nothing to show[/green]")
    else:
        console.print(table)


@app.command()
def balances():
    """Show USDC balances of the operator, vault and treasury."""
    settings = get_settings()
    decimals = settings.asset_decimals
    operator = (
        Account.from_key(settings.operator_private_key).address
        if settings.operator_private_key
        else None
    )

    async def load():
        source_client, destination_client = create_clients(settings)
        rows = []
        for client, token, holders in (
            (
                source_client,
                settings.source_usdc_address,
                [("operator", operator), ("vault", settings.vault_address)],
            ),
            (
                destination_client,
                settings.destination_usdc_address,
                [("operator", operator), ("treasury", settings.treasury_address)],
            ),
        ):
            contracts = ContractManager(client)
            for label, address in holders:
                if not address:
                    continue
                balance = await contracts.token_balance(token, address)
                rows.append((client.name, label, address, balance))
        return rows

    try:
        rows = asyncio.run(load())
    except Exception as e:
        _fail(e)

    table = Table(title="USDC balances")
    table.add_column("Chain", style="cyan")
    table.add_column("Holder", style="green")
    table.add_column("Address", style="dim")
    table.add_column("USDC", justify="right")
    for chain, label, address, balance in rows:
        table.add_row(chain, label, address, format_units(balance, decimals))
    console.print(table)


@app.command("init-db")
def init_db():
    """Create the ledger tables."""
    settings = get_settings()

    async def run():
        engine, _ = await create_ledger(settings)
        await engine.dispose()

    asyncio.run(run())
    console.print(f"[green]Ledger ready[/green] ({settings.database_url})")


@app.command()
def version():
    """Show version information."""
    table = Table(show_header=False, box=None)
    table.add_row("[bold]vault-orchestrator[/bold]", f"v{__version__}")
    console.print(table)


def main():
    """Main entrypoint."""
    app()


if __name__ == "__main__":
    main()
