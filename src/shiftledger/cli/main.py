"""Main CLI entry point."""

import logging

import click

from shiftledger.config import LedgerSettings
from shiftledger.database.factories import create_sqlite_database

# Import and register all commands at module level
from shiftledger.cli.commands import agent, attendance, balance, earnings, withdrawal


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides SHIFTLEDGER_DB_PATH environment variable)",
    envvar="SHIFTLEDGER_DB_PATH",
)
@click.option("-v", "--verbose", is_flag=True, help="Log ledger activity to stderr")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """Shiftledger - Agent attendance and earnings ledger.

    Clock agents in and out, book their shift earnings, and settle their
    withdrawal requests.
    """
    ctx.ensure_object(dict)

    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            settings = LedgerSettings.from_env()
        except ValueError as e:
            click.echo(f"Error: Invalid configuration: {e}", err=True)
            ctx.exit(1)
        db = create_sqlite_database(database_path=db_path, settings=settings)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings
        ctx.call_on_close(db.disconnect)


# Register all commands
agent.register_commands(cli)
attendance.register_commands(cli)
balance.register_commands(cli)
earnings.register_commands(cli)
withdrawal.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
