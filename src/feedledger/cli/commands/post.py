"""Multi-currency posting command."""

from datetime import date

import click

from feedledger.cli.date_options import parse_date_option
from feedledger.cli.error_handling import handle_domain_error, unwrap_result
from feedledger.domain.currency import format_amount
from feedledger.domain.entities import TransactionDraft, TransactionType
from feedledger.utils.amount_parser import parse_amount


@click.command("post")
@click.argument("amount")
@click.argument("currency")
@click.option("--account", "account_id", type=int, required=True, help="Ledger account ID")
@click.option(
    "--type",
    "txn_type",
    type=click.Choice([t.value for t in TransactionType], case_sensitive=False),
    required=True,
    help="DEBIT or CREDIT from the account's point of view",
)
@click.option("--description", default="", help="Transaction description")
@click.option("--date", "txn_date", help="Transaction date (default: today)")
@click.option("--reference", help="Reference number")
@click.option("--contra", default="Bank Feed Clearing", show_default=True, help="Contra account name")
@click.pass_context
def post_transaction(
    ctx,
    amount: str,
    currency: str,
    account_id: int,
    txn_type: str,
    description: str,
    txn_date: str | None,
    reference: str | None,
    contra: str,
):
    """Post AMOUNT in CURRENCY as a balanced voucher in the base currency.

    Examples:
        feedledger post 100 USD --account 1200 --type DEBIT --description "Invoice 42"
    """
    engine = ctx.obj["engine"]
    try:
        value = parse_amount(amount)
    except ValueError as e:
        handle_domain_error(ctx, e)

    draft = TransactionDraft(
        date=parse_date_option(ctx, txn_date, "date") or date.today(),
        description=description,
        amount=value,
        currency=currency,
        type=TransactionType(txn_type.upper()),
        account_id=account_id,
        reference_number=reference,
        contra_account=contra,
    )
    posting = unwrap_result(ctx, engine.post_multi_currency_transaction(draft))
    click.echo(
        f"Posted {format_amount(value, currency)} as "
        f"{format_amount(posting.base_amount, engine.base_currency)} at rate {posting.rate_used}"
    )
    click.echo(f"Voucher: {posting.voucher_number} (transaction ID: {posting.transaction_id})")


def register_commands(cli):
    """Register post command with main CLI."""
    cli.add_command(post_transaction)
