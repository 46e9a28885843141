"""Aggregator sync commands."""

from datetime import timedelta

import click

from ledgersync.aggregator.factories import create_plaid_client
from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.account import AccountService
from ledgersync.domain.errors import DomainError
from ledgersync.domain.sync import DEFAULT_BATCH_SIZE, DEFAULT_HISTORY_DAYS, SyncResult, SyncService


def _sync_service(ctx) -> SyncService:
    """Build the sync service, creating the Plaid client unless one was supplied."""
    if ctx.obj.get("aggregator") is None:
        ctx.obj["aggregator"] = create_plaid_client()
        ctx.call_on_close(ctx.obj["aggregator"].close)
    return SyncService(
        ctx.obj["db"],
        ctx.obj["aggregator"],
        history_days=ctx.obj["history_days"],
        batch_size=ctx.obj["batch_size"],
    )


def _echo_result(name: str, result: SyncResult) -> None:
    click.echo(
        f"{name}: {result.added} added, {result.modified} modified, {result.removed} removed "
        f"({result.skipped_duplicates} already imported, {result.skipped_pending} pending, "
        f"{result.skipped_out_of_window} outside window) in {result.duration_ms} ms"
    )
    if result.categories_created:
        click.echo(f"  {result.categories_created} new categories created")


@click.group()
@click.option(
    "--history-days",
    type=click.IntRange(min=1),
    default=DEFAULT_HISTORY_DAYS,
    show_default=True,
    envvar="LEDGERSYNC_HISTORY_DAYS",
    help="Ignore transactions older than this many days",
)
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=DEFAULT_BATCH_SIZE,
    show_default=True,
    envvar="LEDGERSYNC_SYNC_BATCH_SIZE",
    help="Records staged per batch",
)
@click.pass_context
def sync_group(ctx, history_days: int, batch_size: int):
    """Sync linked accounts with the bank-data aggregator."""
    ctx.obj["history_days"] = history_days
    ctx.obj["batch_size"] = batch_size


@sync_group.command("run")
@click.argument("business", metavar="BUSINESS_ID")
@click.argument("account", metavar="ACCOUNT")
@click.option("--refresh", is_flag=True, help="Ask the aggregator for fresh data first")
@click.option("--user", default="cli", envvar="LEDGERSYNC_USER", help="Acting user ID")
@click.pass_context
def run_sync(ctx, business: str, account: str, refresh: bool, user: str):
    """Sync one account.

    ACCOUNT can be an account name or ID.

    Examples:
        ledgersync sync run acme "Checking"
        ledgersync sync run acme "Checking" --refresh
    """
    db = ctx.obj["db"]
    try:
        acc = AccountService(db).resolve_account(business, account)
        service = _sync_service(ctx)
        if refresh:
            result = service.refresh_and_sync(acc.id, business, user)
        else:
            result = service.sync_account(acc.id, business, user)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    _echo_result(acc.name, result)


@sync_group.command("stale")
@click.argument("business", metavar="BUSINESS_ID")
@click.option(
    "--hours", type=click.IntRange(min=0), default=24, show_default=True, help="Staleness threshold"
)
@click.option("--user", default="cli", envvar="LEDGERSYNC_USER", help="Acting user ID")
@click.pass_context
def sync_stale(ctx, business: str, hours: int, user: str):
    """Sync every linked account not synced within the last HOURS."""
    try:
        service = _sync_service(ctx)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    sweep = service.sync_stale_accounts(business, user, stale_after=timedelta(hours=hours))
    if not sweep.synced and not sweep.failed:
        click.echo("No stale accounts.")
        return

    for result in sweep.synced:
        _echo_result(result.account_id, result)
    for account_id, message in sweep.failed.items():
        click.echo(f"{account_id}: failed: {message}", err=True)
    if not sweep.ok:
        ctx.exit(1)


def register_commands(cli):
    """Register sync commands with main CLI."""
    cli.add_command(sync_group, name="sync")
