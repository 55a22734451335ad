"""Attendance commands: clocking in and out, today's state and history."""

import click

from shiftledger.cli.date_filters import period_options, resolve_cli_date_range
from shiftledger.cli.error_handling import handle_domain_error
from shiftledger.domain.agent import AgentService
from shiftledger.domain.attendance import AttendanceService
from shiftledger.domain.errors import DomainError, StoreUnavailableError
from shiftledger.utils.agent_resolver import resolve_agent


def _format_time(value) -> str:
    return value.strftime("%H:%M:%S") if value is not None else "-"


def _resolve(ctx, agent: str) -> int:
    service = AgentService(ctx.obj["db"], settings=ctx.obj["settings"])
    return resolve_agent(service, agent)


@click.group()
def attendance_group():
    """Clock agents in and out."""
    pass


@attendance_group.command("clock-in")
@click.argument("agent", metavar="AGENT")
@click.pass_context
def clock_in(ctx, agent: str):
    """Clock an agent in for today.

    AGENT can be a username or ID.
    """
    service = AttendanceService(ctx.obj["db"])
    try:
        result = service.clock_in(_resolve(ctx, agent))
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Clocked in at {result.clock_in_time:%Y-%m-%d %H:%M:%S}")


@attendance_group.command("clock-out")
@click.argument("agent", metavar="AGENT")
@click.pass_context
def clock_out(ctx, agent: str):
    """Clock an agent out and book the shift's earnings.

    AGENT can be a username or ID.
    """
    service = AttendanceService(ctx.obj["db"])
    try:
        result = service.clock_out(_resolve(ctx, agent))
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Clocked out at {result.clock_out_time:%Y-%m-%d %H:%M:%S}")
    click.echo(f"Worked {result.work_hours} h at {result.hourly_rate:.2f}/h, earned {result.earnings:.2f}")
    click.echo(f"Available balance: {result.new_balance:.2f}")


@attendance_group.command("status")
@click.argument("agent", metavar="AGENT")
@click.pass_context
def status(ctx, agent: str):
    """Show an agent's attendance state for today."""
    service = AttendanceService(ctx.obj["db"])
    try:
        today = service.get_today_status(_resolve(ctx, agent))
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Agent:     {today.username}")
    click.echo(f"Status:    {today.status.value}")
    click.echo(f"Clock in:  {_format_time(today.clock_in_time)}")
    click.echo(f"Clock out: {_format_time(today.clock_out_time)}")
    click.echo(f"Worked:    {today.work_duration_minutes} min")
    click.echo(f"Earnings:  {today.earnings:.2f}")


@attendance_group.command("overview")
@click.option("--page", default=1, type=int, help="Page number")
@click.option("--page-size", default=50, type=int, help="Agents per page")
@click.pass_context
def overview(ctx, page: int, page_size: int):
    """Show today's state of every agent."""
    service = AttendanceService(ctx.obj["db"])
    try:
        statuses, total = service.list_today_overview(page=page, page_size=page_size)
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    if not statuses:
        click.echo("No agents found.")
        return

    click.echo(f"\nToday ({total} agents):")
    click.echo("-" * 80)
    for s in statuses:
        click.echo(
            f"{s.username:20s} | {s.status.value:11s} | in {_format_time(s.clock_in_time)} | "
            f"out {_format_time(s.clock_out_time)} | {s.work_duration_minutes:4d} min | {s.earnings:8.2f}"
        )


@attendance_group.command("history")
@click.option("--agent", "agent", help="Only show this agent (username or ID)")
@period_options
@click.option("--page", default=1, type=int, help="Page number")
@click.option("--page-size", default=20, type=int, help="Rows per page")
@click.pass_context
def history(
    ctx,
    agent: str | None,
    start_date: str | None,
    end_date: str | None,
    this_week: bool,
    this_month: bool,
    last_week: bool,
    last_month: bool,
    page: int,
    page_size: int,
):
    """List clock-in/clock-out history, newest first.

    Examples:
        shiftledger attendance history --agent alice --this-month
        shiftledger attendance history --start-date 2024-01-01 --end-date 2024-01-31
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

    service = AttendanceService(ctx.obj["db"])
    try:
        agent_id = _resolve(ctx, agent) if agent else None
        result = service.get_attendance_history(
            agent_id=agent_id, start_date=start, end_date=end, page=page, page_size=page_size
        )
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    if not result.records:
        click.echo("No attendance records found.")
        return

    click.echo(f"\nAttendance ({result.total} records):")
    click.echo("-" * 90)
    for r in result.records:
        entry = f"#{r.entry_id}" if r.entry_id is not None else "live"
        click.echo(
            f"{entry:>6s} | {r.date.isoformat()} | {(r.username or str(r.agent_id)):15s} | "
            f"{r.status.value:11s} | in {_format_time(r.clock_in_time)} | "
            f"out {_format_time(r.clock_out_time)} | {r.earnings:8.2f}"
        )


@attendance_group.command("reset")
@click.argument("agent", metavar="AGENT")
@click.confirmation_option(prompt="Drop today's attendance and earnings records for this agent?")
@click.pass_context
def reset(ctx, agent: str):
    """Reset an agent's day to not clocked in.

    Today's earnings snapshot and history rows are deleted. The balance is
    not touched; run 'earnings resync' afterwards to reconcile it.
    """
    service = AttendanceService(ctx.obj["db"])
    try:
        service.reset_today(_resolve(ctx, agent))
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo("Today's attendance has been reset")


@attendance_group.command("delete-entry")
@click.argument("entry_id", type=int)
@click.pass_context
def delete_entry(ctx, entry_id: int):
    """Delete a single history entry."""
    service = AttendanceService(ctx.obj["db"])
    try:
        service.delete_history_entry(entry_id)
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Deleted history entry {entry_id}")


def register_commands(cli):
    """Register attendance commands with main CLI."""
    cli.add_command(attendance_group, name="attendance")
