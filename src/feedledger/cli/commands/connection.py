"""Bank connection management commands."""

import click

from feedledger.cli.connection_resolution import resolve_connection_or_exit
from feedledger.cli.error_handling import unwrap_result
from feedledger.domain.connection import SUPPORTED_BANKS
from feedledger.domain.currency import format_amount
from feedledger.domain.entities import SyncInterval


@click.group()
def connection_group():
    """Manage bank connections."""
    pass


@connection_group.command("add")
@click.argument("bank", type=click.Choice(sorted(SUPPORTED_BANKS), case_sensitive=False))
@click.argument("account_number")
@click.argument("account_name")
@click.option("--type", "account_type", default="CURRENT", show_default=True, help="Account type")
@click.option(
    "--credential-handle",
    required=True,
    help="Handle issued by the secret store for this account's credentials",
)
@click.option(
    "--interval",
    type=click.Choice([i.value for i in SyncInterval], case_sensitive=False),
    default=SyncInterval.HOURLY.value,
    show_default=True,
    help="Sync interval class",
)
@click.option("--ledger-account", type=int, help="Ledger account ID synced records post to")
@click.option("--currency", help="Account currency (required with --ledger-account)")
@click.pass_context
def add_connection(
    ctx,
    bank: str,
    account_number: str,
    account_name: str,
    account_type: str,
    credential_handle: str,
    interval: str,
    ledger_account: int | None,
    currency: str | None,
):
    """Connect a bank or payment-gateway account.

    Examples:
        feedledger connection add HDFC 50100012345678 "HDFC Current" --credential-handle vault-7
        feedledger connection add STRIPE acct_1 "Stripe USD" --credential-handle vault-9 \\
            --ledger-account 1200 --currency USD --interval DAILY
    """
    engine = ctx.obj["engine"]
    result = engine.connect(
        {
            "bank_id": bank,
            "account_number": account_number,
            "account_name": account_name,
            "account_type": account_type,
            "credential_handle": credential_handle,
            "sync_interval": interval,
            "ledger_account_id": ledger_account,
            "currency": currency,
        }
    )
    conn = unwrap_result(ctx, result)
    click.echo(f"Connected {conn.bank_id} account '{conn.account_name}' (ID: {conn.id})")


@connection_group.command("list")
@click.option("--active", "active_only", is_flag=True, help="Only show active connections")
@click.pass_context
def list_connections(ctx, active_only: bool):
    """List bank connections."""
    engine = ctx.obj["engine"]
    connections = engine.connections.list_connections(active_only=active_only)
    if not connections:
        click.echo("No connections found.")
        return

    click.echo("\nConnections:")
    click.echo("-" * 80)
    for conn in connections:
        status = "active" if conn.is_active else "inactive"
        last_sync = conn.last_sync.strftime("%Y-%m-%d %H:%M") if conn.last_sync else "never"
        click.echo(
            f"ID: {conn.id:3d} | {conn.bank_id:8s} | {conn.account_name:20s} | "
            f"{conn.sync_interval.value:8s} | {status:8s} | Last sync: {last_sync}"
        )


@connection_group.command("deactivate")
@click.argument("connection", metavar="CONNECTION")
@click.pass_context
def deactivate_connection(ctx, connection: str):
    """Deactivate a connection. Its history is kept.

    CONNECTION can be a connection ID or account name.
    """
    engine = ctx.obj["engine"]
    connection_id = resolve_connection_or_exit(ctx, engine.connections, connection)
    conn = unwrap_result(ctx, engine.deactivate_connection(connection_id))
    click.echo(f"Deactivated connection '{conn.account_name}' (ID: {conn.id})")


@connection_group.command("stats")
@click.argument("connection", metavar="CONNECTION")
@click.pass_context
def connection_stats(ctx, connection: str):
    """Show feed statistics for a connection."""
    engine = ctx.obj["engine"]
    connection_id = resolve_connection_or_exit(ctx, engine.connections, connection)
    conn = engine.connections.get_connection(connection_id)
    stats = unwrap_result(ctx, engine.get_bank_feed_stats(connection_id))
    currency = conn.currency or engine.base_currency

    click.echo(f"\nFeed statistics for '{conn.account_name}':")
    click.echo(f"  Transactions: {stats.total_transactions}")
    click.echo(f"  Reconciled:   {stats.reconciled_count}")
    click.echo(f"  Pending:      {stats.pending_count}")
    click.echo(f"  Credits:      {format_amount(stats.total_credits, currency)}")
    click.echo(f"  Debits:       {format_amount(stats.total_debits, currency)}")
    click.echo(f"  Net flow:     {format_amount(stats.net_flow, currency)}")


def register_commands(cli):
    """Register connection commands with main CLI."""
    cli.add_command(connection_group, name="connection")
