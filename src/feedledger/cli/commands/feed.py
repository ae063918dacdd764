"""Bank feed commands: import, review and reconcile."""

import click

from feedledger.cli.connection_resolution import resolve_connection_or_exit
from feedledger.cli.error_handling import unwrap_result
from feedledger.domain.currency import format_amount
from feedledger.domain.sources import JsonFileFeedFetcher
from feedledger.domain.sync import SyncService


@click.group()
def feed_group():
    """Import and reconcile bank feed transactions."""
    pass


@feed_group.command("import")
@click.argument("feed_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--connection", required=True, help="Connection ID or account name")
@click.pass_context
def import_feed(ctx, feed_file: str, connection: str):
    """Run one ingestion cycle from a JSON file of vendor records.

    Records already stored for the connection are reported as duplicates.

    Examples:
        feedledger feed import hdfc-march.json --connection 1
    """
    engine = ctx.obj["engine"]
    connection_id = resolve_connection_or_exit(ctx, engine.connections, connection)

    service = SyncService(
        engine.db,
        JsonFileFeedFetcher(feed_file, respect_window=False),
        store=engine.store,
        categorizer=engine.categorizer,
        poster=engine.poster,
        lookback_days=engine.config.lookback_days,
        fetch_timeout=engine.config.fetch_timeout,
        clock=engine.clock,
    )
    result = service.sync_connection(connection_id)

    click.echo("\nImport complete:")
    click.echo(f"  Fetched: {result.fetched} records")
    click.echo(f"  Imported: {result.inserted} transactions")
    click.echo(f"  Skipped: {result.duplicates} duplicates")
    if result.skipped:
        click.echo(f"  Unreadable: {result.skipped} records")
    if result.posted:
        click.echo(f"  Posted: {result.posted} to the ledger")
    if result.errors:
        click.echo(f"  Errors: {len(result.errors)}")
        for error in result.errors:
            click.echo(f"    {error}", err=True)
    if not result.success:
        ctx.exit(1)


@feed_group.command("unreconciled")
@click.option("--connection", help="Connection ID or account name")
@click.pass_context
def list_unreconciled(ctx, connection: str | None):
    """List unreconciled feed transactions, newest first."""
    engine = ctx.obj["engine"]
    connection_id = None
    if connection is not None:
        connection_id = resolve_connection_or_exit(ctx, engine.connections, connection)

    transactions = unwrap_result(ctx, engine.get_unreconciled_transactions(connection_id))
    if not transactions:
        click.echo("No unreconciled transactions.")
        return

    currencies = {c.id: c.currency for c in engine.connections.list_connections()}
    click.echo(f"\n{'ID':>5}  {'Date':10}  {'Type':6}  {'Amount':>14}  {'Category':16}  Description")
    click.echo("-" * 90)
    for txn in transactions:
        currency = currencies.get(txn.connection_id) or engine.base_currency
        click.echo(
            f"{txn.id:5d}  {txn.date:%Y-%m-%d}  {txn.type.value:6}  "
            f"{format_amount(txn.amount, currency):>14}  {txn.category:16}  {txn.description}"
        )


@feed_group.command("reconcile")
@click.argument("transaction_id", type=int)
@click.pass_context
def reconcile_transaction(ctx, transaction_id: int):
    """Mark a feed transaction as reconciled."""
    engine = ctx.obj["engine"]
    txn = unwrap_result(ctx, engine.mark_reconciled(transaction_id))
    click.echo(f"Transaction {txn.id} marked as reconciled")


@feed_group.command("categorize")
@click.argument("transaction_ids", type=int, nargs=-1, required=True)
@click.pass_context
def categorize_transactions(ctx, transaction_ids: tuple[int, ...]):
    """Categorize feed transactions from their descriptions."""
    engine = ctx.obj["engine"]
    failed = False
    for transaction_id in transaction_ids:
        result = engine.categorize(transaction_id)
        if result.success:
            prediction = result.data
            click.echo(
                f"Transaction {transaction_id}: {prediction.category} ({prediction.confidence})"
            )
        else:
            failed = True
            click.echo(f"Error: {result.message}", err=True)
    if failed:
        ctx.exit(1)


def register_commands(cli):
    """Register feed commands with main CLI."""
    cli.add_command(feed_group, name="feed")
