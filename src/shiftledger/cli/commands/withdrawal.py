"""Withdrawal commands: requests and their settlement."""

import click

from shiftledger.cli.error_handling import handle_domain_error
from shiftledger.domain.agent import AgentService
from shiftledger.domain.entities import WithdrawalRequest, WithdrawalStatus
from shiftledger.domain.errors import DomainError, StoreUnavailableError, WithdrawalNotFoundError, withdrawal_not_found
from shiftledger.domain.withdrawal import WithdrawalService
from shiftledger.utils.agent_resolver import resolve_agent
from shiftledger.utils.amount_parser import parse_amount


def _service(ctx) -> WithdrawalService:
    return WithdrawalService(ctx.obj["db"], settings=ctx.obj["settings"])


def _echo_withdrawal(w: WithdrawalRequest) -> None:
    click.echo(f"Withdrawal {w.withdrawal_id}")
    click.echo(f"  Agent:        {w.agent_id}")
    click.echo(f"  Amount:       {w.amount:.2f}")
    click.echo(f"  Fee:          {w.platform_fee:.2f}")
    click.echo(f"  Final amount: {w.final_amount:.2f}")
    click.echo(f"  Status:       {w.status.value}")
    click.echo(f"  Requested:    {w.created_at:%Y-%m-%d %H:%M:%S}")
    if w.description:
        click.echo(f"  Description:  {w.description}")
    if w.processed_by is not None:
        click.echo(f"  Processed by: {w.processed_by} at {w.processed_at:%Y-%m-%d %H:%M:%S}")
    if w.reject_reason:
        click.echo(f"  Reason:       {w.reject_reason}")
    if w.notes:
        click.echo(f"  Notes:        {w.notes}")
    if w.completed_at is not None:
        click.echo(f"  Completed:    {w.completed_at:%Y-%m-%d %H:%M:%S}")


@click.group()
def withdrawal_group():
    """Request and settle withdrawals."""
    pass


@withdrawal_group.command("request")
@click.argument("agent", metavar="AGENT")
@click.argument("amount", metavar="AMOUNT")
@click.option("--description", "-d", help="Free text from the agent")
@click.pass_context
def request(ctx, agent: str, amount: str, description: str | None):
    """Request a withdrawal from an agent's available balance.

    The balance is checked but not deducted until the request is approved.

    Examples:
        shiftledger withdrawal request alice 50.00
    """
    try:
        agent_id = resolve_agent(AgentService(ctx.obj["db"], settings=ctx.obj["settings"]), agent)
        withdrawal_id = _service(ctx).request_withdrawal(agent_id, parse_amount(amount), description)
    except (DomainError, ValueError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created withdrawal request {withdrawal_id}")


@withdrawal_group.command("approve")
@click.argument("withdrawal_id")
@click.option("--approver", required=True, type=int, help="ID of the approving operator")
@click.option("--notes", help="Operator notes")
@click.pass_context
def approve(ctx, withdrawal_id: str, approver: int, notes: str | None):
    """Approve a pending request and deduct it from the balance."""
    try:
        w = _service(ctx).approve(withdrawal_id, approver, notes=notes)
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Approved withdrawal {w.withdrawal_id} ({w.amount:.2f})")


@withdrawal_group.command("reject")
@click.argument("withdrawal_id")
@click.option("--approver", required=True, type=int, help="ID of the rejecting operator")
@click.option("--reason", required=True, help="Reason shown to the agent")
@click.pass_context
def reject(ctx, withdrawal_id: str, approver: int, reason: str):
    """Reject a pending request. The balance is not touched."""
    try:
        w = _service(ctx).reject(withdrawal_id, approver, reason)
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Rejected withdrawal {w.withdrawal_id}")


@withdrawal_group.command("complete")
@click.argument("withdrawal_id")
@click.option("--approver", type=int, help="ID of the operator (recorded when completing a pending request)")
@click.option("--notes", help="Operator notes")
@click.pass_context
def complete(ctx, withdrawal_id: str, approver: int | None, notes: str | None):
    """Mark a request as paid out.

    A pending request is approved and deducted on the way.
    """
    try:
        w = _service(ctx).complete(withdrawal_id, approver_id=approver, notes=notes)
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Completed withdrawal {w.withdrawal_id} ({w.final_amount:.2f} paid out)")


@withdrawal_group.command("list")
@click.option("--agent", help="Only show this agent (username or ID)")
@click.option("--status", type=click.Choice([s.value for s in WithdrawalStatus]), help="Filter by status")
@click.option("--page", default=1, type=int, help="Page number")
@click.option("--page-size", default=20, type=int, help="Rows per page")
@click.pass_context
def list_withdrawals(ctx, agent: str | None, status: str | None, page: int, page_size: int):
    """List withdrawal requests, newest first."""
    try:
        agent_id = None
        if agent:
            agent_id = resolve_agent(AgentService(ctx.obj["db"], settings=ctx.obj["settings"]), agent)
        result = _service(ctx).list_withdrawals(
            agent_id=agent_id,
            status=WithdrawalStatus(status) if status else None,
            page=page,
            page_size=page_size,
        )
    except (DomainError, StoreUnavailableError) as e:
        handle_domain_error(ctx, e)

    if not result.withdrawals:
        click.echo("No withdrawals found.")
        return

    click.echo(f"\nWithdrawals ({result.total} total):")
    click.echo("-" * 80)
    for w in result.withdrawals:
        click.echo(
            f"{w.withdrawal_id:22s} | agent {w.agent_id:4d} | {w.amount:10.2f} | "
            f"{w.status.value:9s} | {w.created_at:%Y-%m-%d %H:%M}"
        )


@withdrawal_group.command("show")
@click.argument("withdrawal_id")
@click.pass_context
def show(ctx, withdrawal_id: str):
    """Show one withdrawal request."""
    w = _service(ctx).get_withdrawal(withdrawal_id)
    if w is None:
        handle_domain_error(ctx, WithdrawalNotFoundError(withdrawal_not_found(withdrawal_id)))
    _echo_withdrawal(w)


def register_commands(cli):
    """Register withdrawal commands with main CLI."""
    cli.add_command(withdrawal_group, name="withdrawal")
