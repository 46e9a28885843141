"""CLI error handling helpers."""

import click

from ledgersync.domain.errors import DomainError, SyncError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    if isinstance(error, SyncError) and error.retryable:
        click.echo("The sync can be retried safely.", err=True)
    ctx.exit(1)
