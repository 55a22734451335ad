"""Agent management commands."""

import click

from shiftledger.cli.error_handling import handle_domain_error
from shiftledger.domain.agent import AgentService
from shiftledger.domain.entities import AgentStatus
from shiftledger.domain.errors import DomainError, StoreUnavailableError
from shiftledger.utils.agent_resolver import resolve_agent
from shiftledger.utils.amount_parser import parse_amount


@click.group()
def agent_group():
    """Manage agents."""
    pass


@agent_group.command("create")
@click.argument("username", metavar="USERNAME")
@click.option("--rate", help="Hourly rate (defaults to SHIFTLEDGER_DEFAULT_HOURLY_RATE or 20.00)")
@click.option("--balance", default="0", help="Opening available balance")
@click.pass_context
def create_agent(ctx, username: str, rate: str | None, balance: str):
    """Create a new agent.

    Examples:
        shiftledger agent create alice
        shiftledger agent create bob --rate 25.50
    """
    service = AgentService(ctx.obj["db"], settings=ctx.obj["settings"])

    try:
        hourly_rate = parse_amount(rate) if rate is not None else None
        initial_balance = parse_amount(balance)
        agent_id = service.create_agent(
            username=username, hourly_rate=hourly_rate, initial_balance=initial_balance
        )
    except (DomainError, ValueError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    created = service.get_agent(agent_id)
    click.echo(f"Created agent '{created.username}' (ID: {agent_id}) at {created.hourly_rate:.2f}/h")


@agent_group.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in AgentStatus]),
    help="Only list agents with this status",
)
@click.pass_context
def list_agents(ctx, status: str | None):
    """List all agents."""
    service = AgentService(ctx.obj["db"], settings=ctx.obj["settings"])

    agents = service.list_agents(status=AgentStatus(status) if status else None)
    if not agents:
        click.echo("No agents found.")
        return

    click.echo("\nAgents:")
    click.echo("-" * 80)
    for a in agents:
        click.echo(
            f"ID: {a.id:3d} | {a.username:20s} | {a.status.value:8s} | "
            f"Rate: {a.hourly_rate:8.2f} | Balance: {a.available_balance:10.2f}"
        )


@agent_group.command("show")
@click.argument("agent", metavar="AGENT")
@click.pass_context
def show_agent(ctx, agent: str):
    """Show an agent's account.

    AGENT can be a username or ID.
    """
    service = AgentService(ctx.obj["db"], settings=ctx.obj["settings"])

    try:
        agent_id = resolve_agent(service, agent)
    except DomainError as e:
        handle_domain_error(ctx, e)

    a = service.get_agent(agent_id)
    click.echo(f"\nAgent {a.username} (ID: {a.id})")
    click.echo("-" * 40)
    click.echo(f"Status:              {a.status.value}")
    click.echo(f"Hourly rate:         {a.hourly_rate:.2f}")
    click.echo(f"Available balance:   {a.available_balance:.2f}")
    click.echo(f"Total earnings:      {a.total_earnings:.2f}")
    click.echo(f"This month:          {a.current_month_earnings:.2f}")
    click.echo(f"Pending withdrawals: {a.pending_withdrawals:.2f}")
    click.echo(f"Total withdrawals:   {a.total_withdrawals:.2f}")
    click.echo(f"Paid out:            {a.total_withdrawn:.2f}")


@agent_group.command("set-rate")
@click.argument("agent", metavar="AGENT")
@click.argument("rate", metavar="RATE")
@click.pass_context
def set_rate(ctx, agent: str, rate: str):
    """Change an agent's hourly rate.

    The new rate applies to shifts clocked out afterwards.

    Examples:
        shiftledger agent set-rate alice 22.00
    """
    service = AgentService(ctx.obj["db"], settings=ctx.obj["settings"])

    try:
        agent_id = resolve_agent(service, agent)
        updated = service.set_hourly_rate(agent_id, parse_amount(rate))
    except (DomainError, ValueError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Hourly rate for '{updated.username}' set to {updated.hourly_rate:.2f}")


@agent_group.command("set-status")
@click.argument("agent", metavar="AGENT")
@click.argument("status", type=click.Choice([s.value for s in AgentStatus]))
@click.pass_context
def set_status(ctx, agent: str, status: str):
    """Activate or deactivate an agent.

    Inactive agents are skipped by 'earnings resync-all'.
    """
    service = AgentService(ctx.obj["db"], settings=ctx.obj["settings"])

    try:
        agent_id = resolve_agent(service, agent)
        updated = service.set_status(agent_id, AgentStatus(status))
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Agent '{updated.username}' is now {updated.status.value}")


@agent_group.command("set-rate-all")
@click.argument("rate", metavar="RATE")
@click.option(
    "--agent",
    "agents",
    multiple=True,
    help="Only change this agent (username or ID, repeatable). Defaults to all agents.",
)
@click.pass_context
def set_rate_all(ctx, rate: str, agents: tuple[str, ...]):
    """Change the hourly rate of many agents at once.

    Examples:
        shiftledger agent set-rate-all 22.00
        shiftledger agent set-rate-all 22.00 --agent alice --agent bob
    """
    service = AgentService(ctx.obj["db"], settings=ctx.obj["settings"])

    try:
        hourly_rate = parse_amount(rate)
        agent_ids = [resolve_agent(service, a) for a in agents] if agents else None
        updated = service.set_hourly_rate_bulk(hourly_rate, agent_ids)
    except (DomainError, ValueError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Hourly rate set to {hourly_rate:.2f} for {updated} agent(s)")


@agent_group.command("stats")
@click.pass_context
def show_stats(ctx):
    """Show headcount and totals across all agents."""
    service = AgentService(ctx.obj["db"], settings=ctx.obj["settings"])

    try:
        stats = service.get_stats()
    except StoreUnavailableError as e:
        handle_domain_error(ctx, e)

    click.echo("\nAgent statistics")
    click.echo("-" * 40)
    click.echo(f"Agents:              {stats.total_agents}")
    click.echo(f"Active:              {stats.active_agents}")
    click.echo(f"Working today:       {stats.working_today}")
    click.echo(f"Total earnings:      {stats.total_earnings:.2f}")
    click.echo(f"This month:          {stats.current_month_earnings:.2f}")
    click.echo(f"Pending withdrawals: {stats.pending_withdrawals:.2f}")


def register_commands(cli):
    """Register agent commands with main CLI."""
    cli.add_command(agent_group, name="agent")
