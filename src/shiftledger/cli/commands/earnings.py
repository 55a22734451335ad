"""Earnings commands: resync and daily snapshots."""

from decimal import Decimal

import click

from shiftledger.cli.date_filters import period_options, resolve_cli_date_range
from shiftledger.cli.error_handling import handle_domain_error
from shiftledger.domain.agent import AgentService
from shiftledger.domain.earnings import EarningsService
from shiftledger.domain.errors import DomainError, StoreUnavailableError
from shiftledger.utils.agent_resolver import resolve_agent


@click.group()
def earnings_group():
    """Recompute and inspect earnings."""
    pass


@earnings_group.command("resync")
@click.argument("agent", metavar="AGENT")
@click.pass_context
def resync(ctx, agent: str):
    """Recompute one agent's totals from the daily snapshots.

    Any difference is applied to the available balance. Running it twice
    changes nothing the second time.
    """
    db = ctx.obj["db"]
    try:
        agent_id = resolve_agent(AgentService(db, settings=ctx.obj["settings"]), agent)
        result = EarningsService(db).resync_agent(agent_id)
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Resynced '{result.username}': {result.work_days} work day(s)")
    click.echo(f"Total earnings: {result.total_earnings:.2f} (delta {result.delta:+.2f})")
    click.echo(f"This month:     {result.current_month_earnings:.2f}")
    click.echo(f"Balance:        {result.balance_after:.2f}")


@earnings_group.command("resync-all")
@click.pass_context
def resync_all(ctx):
    """Resync every active agent.

    Each agent is handled in its own transaction; one failure does not
    stop the others. Exits with status 1 if any agent failed.
    """
    batch = EarningsService(ctx.obj["db"]).resync_all_agents()

    for r in batch.results:
        click.echo(f"{r.username:20s} | total {r.total_earnings:10.2f} | delta {r.delta:+10.2f}")
    for f in batch.failures:
        click.echo(f"{f.username:20s} | FAILED: {f.error}", err=True)

    click.echo(f"\nResynced {batch.success_count} of {batch.total_count} agent(s)")
    if batch.failure_count:
        ctx.exit(1)


@earnings_group.command("daily")
@click.argument("agent", metavar="AGENT")
@period_options
@click.pass_context
def daily(
    ctx,
    agent: str,
    start_date: str | None,
    end_date: str | None,
    this_week: bool,
    this_month: bool,
    last_week: bool,
    last_month: bool,
):
    """List an agent's daily earnings snapshots.

    Examples:
        shiftledger earnings daily alice --this-month
    """
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags={
            "this-week": this_week,
            "this-month": this_month,
            "last-week": last_week,
            "last-month": last_month,
        },
    )

    db = ctx.obj["db"]
    try:
        agent_id = resolve_agent(AgentService(db, settings=ctx.obj["settings"]), agent)
        records = EarningsService(db).list_daily_earnings(agent_id, start_date=start, end_date=end)
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    if not records:
        click.echo("No earnings records found.")
        return

    click.echo("\nDaily earnings:")
    click.echo("-" * 60)
    total = sum((r.total_earnings for r in records), Decimal("0.00"))
    for r in records:
        click.echo(
            f"{r.date.isoformat()} | {r.work_hours:6.2f} h | {r.hourly_rate:8.2f}/h | {r.total_earnings:10.2f}"
        )
    click.echo("-" * 60)
    click.echo(f"Total: {total:.2f}")


def register_commands(cli):
    """Register earnings commands with main CLI."""
    cli.add_command(earnings_group, name="earnings")
