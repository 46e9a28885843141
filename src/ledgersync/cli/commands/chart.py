"""Chart of accounts commands."""

import click

from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.chart import CategoryService, ChartOfAccountsService
from ledgersync.domain.entities import AccountType
from ledgersync.domain.errors import DomainError


@click.group()
def chart_group():
    """Manage the chart of accounts."""
    pass


@chart_group.command("init")
@click.argument("business", metavar="BUSINESS_ID")
@click.pass_context
def init_chart(ctx, business: str):
    """Create the default chart of accounts for a business.

    Existing account codes are kept, so this can be run again safely.

    Examples:
        ledgersync chart init acme
    """
    db = ctx.obj["db"]
    created = ChartOfAccountsService(db).initialize_chart(business)
    if created == 0:
        click.echo("Chart of accounts already initialized.")
    else:
        click.echo(f"Created {created} categories.")


@chart_group.command("list")
@click.argument("business", metavar="BUSINESS_ID")
@click.option(
    "--type",
    "account_type",
    type=click.Choice([t.value for t in AccountType], case_sensitive=False),
    help="Only list categories of this type",
)
@click.option("--all", "show_all", is_flag=True, help="Include deactivated categories")
@click.pass_context
def list_chart(ctx, business: str, account_type: str | None, show_all: bool):
    """List the chart of accounts of a business."""
    db = ctx.obj["db"]
    service = CategoryService(db)

    type_filter = AccountType(account_type.upper()) if account_type else None
    categories = service.list_categories(business, account_type=type_filter, active_only=not show_all)
    if not categories:
        click.echo("No categories found.")
        return

    click.echo(f"\n{'Code':<6} {'Type':<10} Name")
    click.echo("-" * 60)
    for cat in categories:
        suffix = "" if cat.is_active else " (inactive)"
        click.echo(f"{cat.account_code:<6} {cat.account_type.value:<10} {cat.name}{suffix}")


@chart_group.command("add")
@click.argument("business", metavar="BUSINESS_ID")
@click.argument("name")
@click.option(
    "--type",
    "account_type",
    type=click.Choice([t.value for t in AccountType], case_sensitive=False),
    required=True,
    help="Account type",
)
@click.option("--code", help="Account code (allocated from the type's range if omitted)")
@click.pass_context
def add_category(ctx, business: str, name: str, account_type: str, code: str | None):
    """Add a category to the chart of accounts."""
    db = ctx.obj["db"]
    service = CategoryService(db)
    try:
        category_id = service.create_category(
            business, name, AccountType(account_type.upper()), account_code=code
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    category = service.get_category(category_id)
    click.echo(f"Created category {category.account_code} '{category.name}' (ID: {category_id})")


@chart_group.command("remove")
@click.argument("business", metavar="BUSINESS_ID")
@click.argument("code")
@click.pass_context
def remove_category(ctx, business: str, code: str):
    """Remove a category by account code.

    Categories still in use are deactivated instead of deleted.
    """
    db = ctx.obj["db"]
    service = CategoryService(db)
    try:
        category = service.get_by_code(business, code)
        outcome = service.remove_category(category.id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Category {code} '{category.name}' {outcome}.")


def register_commands(cli):
    """Register chart commands with main CLI."""
    cli.add_command(chart_group, name="chart")
