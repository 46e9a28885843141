"""Document matching command."""

import json

import click

from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.matching import MatchingService, parse_document


@click.command("match")
@click.argument("business", metavar="BUSINESS_ID")
@click.argument("document", metavar="DOCUMENT_JSON", type=click.File("r"))
@click.option(
    "--window", type=click.IntRange(min=0), default=7, show_default=True, help="Days around the document date"
)
@click.option("--account", help="Only consider transactions of this account ID")
@click.pass_context
def match_document(ctx, business: str, document, window: int, account: str | None):
    """Find transactions matching an extracted document.

    DOCUMENT_JSON is a file with the extraction service's fields
    (vendor, amount, date, tax, line_items, document_type). Use - for stdin.

    Examples:
        ledgersync match acme receipt.json
    """
    db = ctx.obj["db"]
    try:
        extracted = parse_document(json.load(document))
    except (json.JSONDecodeError, ValueError) as e:
        handle_domain_error(ctx, ValueError(f"Invalid document: {e}"))
        return

    if not extracted.is_financial:
        click.echo("Not a financial document.")
        return

    matches = MatchingService(db).match_document(
        extracted, business, window_days=window, account_id=account
    )
    if not matches:
        click.echo("No matching transactions found.")
        return

    for m in matches:
        kind = "partial" if m.partial else "full"
        click.echo(f"{m.transaction_id} | {m.confidence:.2f} | {kind:7s} | {m.reason}")


def register_commands(cli):
    """Register match command with main CLI."""
    cli.add_command(match_document)
