"""Balance commands: operator adjustments and the balance log."""

import click

from shiftledger.cli.error_handling import handle_domain_error
from shiftledger.domain.agent import AgentService
from shiftledger.domain.balance import BalanceService
from shiftledger.domain.errors import DomainError, StoreUnavailableError
from shiftledger.utils.agent_resolver import resolve_agent
from shiftledger.utils.amount_parser import parse_amount


@click.group()
def balance_group():
    """Adjust balances and inspect balance changes."""
    pass


@balance_group.command("adjust")
@click.argument("agent", metavar="AGENT")
@click.argument("amount", metavar="AMOUNT")
@click.option("--description", "-d", required=True, help="Reason for the adjustment")
@click.option("--deduct", is_flag=True, help="Take AMOUNT out of the balance instead of adding it")
@click.pass_context
def adjust(ctx, agent: str, amount: str, description: str, deduct: bool):
    """Credit or debit an agent's available balance.

    Earnings totals are not changed.

    Examples:
        shiftledger balance adjust alice 15.00 -d "Referral bonus"
        shiftledger balance adjust alice 5.00 --deduct -d "Overpaid shift"
    """
    try:
        agent_id = resolve_agent(AgentService(ctx.obj["db"], settings=ctx.obj["settings"]), agent)
        value = parse_amount(amount)
        change = BalanceService(ctx.obj["db"]).adjust_balance(
            agent_id, -value if deduct else value, description
        )
    except (DomainError, ValueError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"Balance adjusted by {change.amount:+.2f}: "
        f"{change.balance_before:.2f} -> {change.balance_after:.2f}"
    )


@balance_group.command("logs")
@click.argument("agent", metavar="AGENT")
@click.option("--page", default=1, type=int, help="Page number")
@click.option("--page-size", default=20, type=int, help="Rows per page")
@click.pass_context
def logs(ctx, agent: str, page: int, page_size: int):
    """List an agent's balance changes, newest first."""
    try:
        agent_id = resolve_agent(AgentService(ctx.obj["db"], settings=ctx.obj["settings"]), agent)
        result = BalanceService(ctx.obj["db"]).list_balance_logs(agent_id, page=page, page_size=page_size)
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    if not result.entries:
        click.echo("No balance changes found.")
        return

    click.echo(f"\nBalance changes ({result.total} total):")
    click.echo("-" * 80)
    for entry in result.entries:
        click.echo(
            f"{entry.action_time:%Y-%m-%d %H:%M} | {entry.amount:+10.2f} | "
            f"{entry.balance_before:10.2f} -> {entry.balance_after:10.2f} | {entry.description or ''}"
        )


def register_commands(cli):
    """Register balance commands with main CLI."""
    cli.add_command(balance_group, name="balance")
