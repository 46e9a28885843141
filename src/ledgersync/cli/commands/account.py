"""Account management commands."""

import click

from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.account import AccountService
from ledgersync.domain.balance import BalanceService
from ledgersync.domain.errors import DomainError
from ledgersync.domain.posting import PostingService, PostingStatus
from ledgersync.utils.amount_parser import parse_amount


def _parse_amount_arg(ctx, value: str):
    try:
        return parse_amount(value)
    except ValueError as e:
        handle_domain_error(ctx, e)


@click.group()
def account_group():
    """Manage bank accounts."""
    pass


@account_group.command("link")
@click.argument("business", metavar="BUSINESS_ID")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option("--currency", default="USD", show_default=True, help="ISO currency code")
@click.option("--token", help="Aggregator access token for syncing")
@click.option("--opening-balance", default="0", help="Starting balance to post")
@click.option("--user", default="cli", envvar="LEDGERSYNC_USER", help="Acting user ID")
@click.pass_context
def link_account(
    ctx, business: str, name: str, currency: str, token: str | None, opening_balance: str, user: str
):
    """Create an account and post its opening balance.

    Examples:
        ledgersync account link acme "Operating" --opening-balance 2500.00
        ledgersync account link acme "Checking" --token access-sandbox-123
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    balance = _parse_amount_arg(ctx, opening_balance)

    try:
        account_id = service.link_account(
            business_id=business,
            name=name,
            user_id=user,
            currency=currency,
            sync_token=token,
            opening_balance=balance,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Created account '{name}' (ID: {account_id})")
    if balance:
        click.echo(f"Opening balance {balance} posted")


@account_group.command("list")
@click.argument("business", metavar="BUSINESS_ID")
@click.pass_context
def list_accounts(ctx, business: str):
    """List the accounts of a business."""
    db = ctx.obj["db"]
    accounts = AccountService(db).list_accounts(business)
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 80)
    for acc in accounts:
        synced = acc.last_synced_at.strftime("%Y-%m-%d %H:%M") if acc.last_synced_at else "never"
        linked = "linked" if acc.is_linked else "manual"
        click.echo(
            f"{acc.id} | {acc.name:20s} | {acc.balance:>14} {acc.currency} | {linked} | synced: {synced}"
        )


@account_group.command("set-balance")
@click.argument("business", metavar="BUSINESS_ID")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount")
@click.option("--user", default="cli", envvar="LEDGERSYNC_USER", help="Acting user ID")
@click.pass_context
def set_balance(ctx, business: str, account: str, amount: str, user: str):
    """Correct an account's balance, posting the difference.

    ACCOUNT can be an account name or ID.
    """
    db = ctx.obj["db"]
    new_balance = _parse_amount_arg(ctx, amount)
    try:
        acc = AccountService(db).resolve_account(business, account)
        result = PostingService(db).set_balance(acc.id, new_balance, business, user)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if result.status == PostingStatus.NO_CHANGE:
        click.echo("Balance unchanged.")
    else:
        click.echo(f"Balance of '{acc.name}' set to {new_balance} (adjustment {result.amount})")


@account_group.command("reconcile")
@click.argument("business", metavar="BUSINESS_ID")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def reconcile_account(ctx, business: str, account: str):
    """Compare an account's tracked balance with its journal balance."""
    db = ctx.obj["db"]
    try:
        acc = AccountService(db).resolve_account(business, account)
        report = BalanceService(db).reconcile_account(acc.id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Tracked balance: {report.tracked_balance}")
    click.echo(f"Journal balance: {report.journal_balance}")
    if report.reconciled:
        click.echo("Reconciled.")
        return

    click.echo(f"Difference: {report.difference}")
    click.echo("Possible reasons:")
    for reason in report.possible_reasons:
        click.echo(f"  - {reason}")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
