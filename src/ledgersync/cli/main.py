"""Main CLI entry point."""

import logging

import click
from ledgersync.database.factories import create_sqlite_database

from ledgersync.cli.commands import account, chart, journal, match, sync


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides LEDGERSYNC_DB_PATH environment variable)",
    envvar="LEDGERSYNC_DB_PATH",
)
@click.option("-v", "--verbose", is_flag=True, help="Log progress at INFO level")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """Ledgersync - ledger synchronization and reconciliation.

    Imports bank transactions from an aggregator, books opening balances and
    corrections as balanced postings, and matches receipts to transactions.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None and "db" not in ctx.obj:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
chart.register_commands(cli)
account.register_commands(cli)
sync.register_commands(cli)
match.register_commands(cli)
journal.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
