"""Journal commands."""

import click

from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.errors import DomainError
from ledgersync.domain.transaction import TransactionService


@click.group()
def journal_group():
    """Inspect journal entries."""
    pass


@journal_group.command("show")
@click.argument("transaction_id")
@click.pass_context
def show_journal(ctx, transaction_id: str):
    """Show a transaction and its journal lines."""
    db = ctx.obj["db"]
    service = TransactionService(db)
    try:
        lines = service.journal_lines(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    txn = service.get_transaction(transaction_id)
    click.echo(f"{txn.date} {txn.type.value} {txn.amount} {txn.currency} {txn.description or ''}")
    if txn.notes:
        click.echo(f"Notes: {txn.notes}")
    if not lines:
        click.echo("No journal lines.")
        return

    click.echo(f"\n{'Account':<8} {'Debit':>14} {'Credit':>14}  Description")
    click.echo("-" * 70)
    for line in lines:
        category = db.get_category(line.category_id)
        code = category.account_code if category else "?"
        click.echo(
            f"{code:<8} {line.debit_amount:>14} {line.credit_amount:>14}  {line.description or ''}"
        )


def register_commands(cli):
    """Register journal commands with main CLI."""
    cli.add_command(journal_group, name="journal")
