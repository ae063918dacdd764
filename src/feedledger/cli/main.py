"""Main CLI entry point."""

import logging
from dataclasses import replace

import click

from feedledger.config import EngineConfig
from feedledger.database.factories import create_sqlite_database
from feedledger.domain.engine import LedgerEngine

# Import and register all commands at module level
from feedledger.cli.commands import (
    connection,
    feed,
    rates,
    post,
    revalue,
    report,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides FEEDLEDGER_DB_PATH environment variable)",
    envvar="FEEDLEDGER_DB_PATH",
)
@click.option(
    "--base-currency",
    help="Base currency of the ledger (overrides FEEDLEDGER_BASE_CURRENCY, default INR)",
    envvar="FEEDLEDGER_BASE_CURRENCY",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity",
)
@click.pass_context
def cli(ctx, db_path: str | None, base_currency: str | None, log_level: str):
    """Feedledger - multi-currency ledger and bank-feed reconciliation.

    Ingest bank and payment-gateway feeds, post them as balanced vouchers
    in one base currency, and revalue foreign-currency positions.
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            config = EngineConfig.from_env()
        except ValueError as e:
            click.echo(f"Error: Invalid configuration: {e}", err=True)
            ctx.exit(1)
        config = replace(
            config,
            database_path=db_path or config.database_path,
            base_currency=(base_currency or config.base_currency).strip().upper(),
        )
        db = create_sqlite_database(database_path=config.database_path)
        db.connect()
        db.initialize_schema()
        ctx.call_on_close(db.disconnect)
        try:
            engine = LedgerEngine(db, config=config)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
        ctx.obj["db"] = db
        ctx.obj["config"] = config
        ctx.obj["engine"] = engine


# Register all commands
connection.register_commands(cli)
feed.register_commands(cli)
rates.register_commands(cli)
post.register_commands(cli)
revalue.register_commands(cli)
report.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
