"""CLI error handling helpers."""

import click

from shiftledger.domain.errors import DomainError, StoreUnavailableError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError | StoreUnavailableError) -> None:
    """Render a domain or store error and exit with failure."""
    if isinstance(error, StoreUnavailableError):
        click.echo(f"Error: {error} (nothing was changed, try again)", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    ctx.exit(1)
