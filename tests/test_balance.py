"""Tests for the balance reconciliation engine and balance service."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from shiftledger.domain.entities import HistoryAction
from shiftledger.domain.errors import AgentNotFoundError, InsufficientBalanceError, ValidationError


NOW = datetime(2024, 3, 15, 12, 0)


def test_apply_positive_delta(reconciler, agent_service, temp_db, sample_agent):
    """Test crediting earnings to balance, lifetime and month totals."""
    change = reconciler.apply_earnings(sample_agent.id, Decimal("12.50"), "bonus", now=NOW)

    assert change.balance_before == Decimal("0.00")
    assert change.balance_after == Decimal("12.50")
    assert change.history_id is not None

    agent = agent_service.get_agent(sample_agent.id)
    assert agent.available_balance == Decimal("12.50")
    assert agent.total_earnings == Decimal("12.50")
    assert agent.current_month_earnings == Decimal("12.50")
    assert agent.earnings_month == date(2024, 3, 1)

    entry = temp_db.list_history(agent_id=sample_agent.id)[0]
    assert entry.action_type == HistoryAction.BALANCE_CHANGE
    assert entry.description == "bonus"
    assert entry.balance_after == Decimal("12.50")


def test_zero_delta_writes_no_history(reconciler, agent_service, temp_db, sample_agent):
    """Test that a zero delta leaves no balance_change entry."""
    change = reconciler.apply_earnings(sample_agent.id, Decimal("0.00"), "nothing", now=NOW)

    assert change.history_id is None
    assert temp_db.list_history(agent_id=sample_agent.id) == []
    assert agent_service.get_agent(sample_agent.id).available_balance == Decimal("0.00")


def test_negative_delta_within_balance(reconciler, agent_service, funded_agent):
    """Test debiting earnings the balance still covers."""
    change = reconciler.apply_earnings(funded_agent.id, Decimal("-50.00"), "correction", now=NOW)

    assert change.balance_after == Decimal("150.00")
    agent = agent_service.get_agent(funded_agent.id)
    assert agent.available_balance == Decimal("150.00")
    assert agent.total_earnings == Decimal("-50.00")


def test_negative_delta_beyond_balance(reconciler, agent_service, sample_agent):
    """Test that a debit below zero is refused."""
    with pytest.raises(InsufficientBalanceError):
        reconciler.apply_earnings(sample_agent.id, Decimal("-0.01"), "correction", now=NOW)

    assert agent_service.get_agent(sample_agent.id).available_balance == Decimal("0.00")


def test_month_total_override(reconciler, agent_service, sample_agent):
    """Test storing a recomputed month total instead of adding the delta."""
    reconciler.apply_earnings(
        sample_agent.id, Decimal("5.00"), "resync", now=NOW, month_total=Decimal("3.00")
    )

    assert agent_service.get_agent(sample_agent.id).current_month_earnings == Decimal("3.00")


def test_deduct_withdrawal(reconciler, agent_service, temp_db, funded_agent):
    """Test moving an approved withdrawal out of the balance."""
    temp_db.update_agent(funded_agent.id, pending_withdrawals=Decimal("80.00"))

    change = reconciler.deduct_withdrawal(funded_agent.id, Decimal("80.00"), "payout", now=NOW)

    assert change.amount == Decimal("-80.00")
    agent = agent_service.get_agent(funded_agent.id)
    assert agent.available_balance == Decimal("120.00")
    assert agent.total_withdrawals == Decimal("80.00")
    assert agent.pending_withdrawals == Decimal("0.00")
    # Withdrawals never count against earnings
    assert agent.total_earnings == Decimal("0.00")


def test_deduct_more_than_balance(reconciler, agent_service, funded_agent):
    """Test that a withdrawal larger than the balance is refused."""
    with pytest.raises(InsufficientBalanceError):
        reconciler.deduct_withdrawal(funded_agent.id, Decimal("200.01"), "payout", now=NOW)

    assert agent_service.get_agent(funded_agent.id).available_balance == Decimal("200.00")


def test_unknown_agent(reconciler):
    """Test crediting a nonexistent agent."""
    with pytest.raises(AgentNotFoundError):
        reconciler.apply_earnings(77, Decimal("1.00"), "x", now=NOW)


def test_outer_rollback_undoes_balance_change(reconciler, agent_service, temp_db, sample_agent):
    """Test that the balance change rolls back with the caller's transaction."""
    with pytest.raises(RuntimeError):
        with temp_db.transaction():
            reconciler.apply_earnings(sample_agent.id, Decimal("10.00"), "doomed", now=NOW)
            raise RuntimeError("later step failed")

    assert agent_service.get_agent(sample_agent.id).available_balance == Decimal("0.00")
    assert temp_db.list_history(agent_id=sample_agent.id) == []


def test_adjust_balance_credit(balance_service, agent_service, temp_db, sample_agent, clock):
    """Test an operator credit touches the balance but not earnings."""
    change = balance_service.adjust_balance(sample_agent.id, Decimal("15.00"), "Referral bonus")

    assert change.balance_before == Decimal("0.00")
    assert change.balance_after == Decimal("15.00")
    assert change.amount == Decimal("15.00")
    agent = agent_service.get_agent(sample_agent.id)
    assert agent.available_balance == Decimal("15.00")
    assert agent.total_earnings == Decimal("0.00")
    assert agent.current_month_earnings == Decimal("0.00")

    entry = temp_db.list_history(agent_id=sample_agent.id)[0]
    assert entry.action_type == HistoryAction.BALANCE_CHANGE
    assert entry.action_time == clock.now
    assert entry.amount == Decimal("15.00")
    assert entry.description == "Referral bonus"


def test_adjust_balance_debit(balance_service, agent_service, funded_agent):
    """Test an operator debit within the balance."""
    change = balance_service.adjust_balance(funded_agent.id, Decimal("-50.00"), "Overpaid shift")

    assert change.balance_after == Decimal("150.00")
    assert agent_service.get_agent(funded_agent.id).available_balance == Decimal("150.00")


def test_adjust_balance_debit_beyond_balance(balance_service, agent_service, temp_db, funded_agent):
    """Test that a debit below zero is refused and logs nothing."""
    with pytest.raises(InsufficientBalanceError):
        balance_service.adjust_balance(funded_agent.id, Decimal("-200.01"), "Too much")

    assert agent_service.get_agent(funded_agent.id).available_balance == Decimal("200.00")
    assert temp_db.list_history(agent_id=funded_agent.id) == []


@pytest.mark.parametrize(
    "amount,description",
    [
        (Decimal("0"), "nothing"),
        (Decimal("1.005"), "sub-cent"),
        (Decimal("NaN"), "not a number"),
        (Decimal("5.00"), "   "),
    ],
)
def test_adjust_balance_invalid(balance_service, sample_agent, amount, description):
    """Test that zero, sub-cent and non-finite amounts and blank reasons are rejected."""
    with pytest.raises(ValidationError):
        balance_service.adjust_balance(sample_agent.id, amount, description)


def test_adjust_balance_unknown_agent(balance_service):
    """Test adjusting a nonexistent agent."""
    with pytest.raises(AgentNotFoundError):
        balance_service.adjust_balance(404, Decimal("1.00"), "x")


def test_adjustment_survives_resync(balance_service, earnings_service, agent_service, funded_agent):
    """Test that resync does not undo an operator adjustment."""
    balance_service.adjust_balance(funded_agent.id, Decimal("10.00"), "Goodwill")

    result = earnings_service.resync_agent(funded_agent.id)

    assert result.delta == Decimal("0.00")
    assert agent_service.get_agent(funded_agent.id).available_balance == Decimal("210.00")


def test_list_balance_logs(balance_service, attendance_service, sample_agent, clock):
    """Test that the balance log only lists balance changes, newest first."""
    attendance_service.clock_in(sample_agent.id)
    clock.advance(hours=2)
    attendance_service.clock_out(sample_agent.id)
    clock.advance(minutes=5)
    balance_service.adjust_balance(sample_agent.id, Decimal("-10.00"), "Correction")

    page = balance_service.list_balance_logs(sample_agent.id)

    assert page.total == 2
    assert [e.amount for e in page.entries] == [Decimal("-10.00"), Decimal("40.00")]
    assert all(e.action_type == HistoryAction.BALANCE_CHANGE for e in page.entries)
    assert page.entries[0].balance_before == Decimal("40.00")
    assert page.entries[0].balance_after == Decimal("30.00")
    assert page.entries[0].agent_username == "alice"


def test_list_balance_logs_paging(balance_service, sample_agent, clock):
    """Test paging through the balance log."""
    for amount in ("1.00", "2.00", "3.00"):
        balance_service.adjust_balance(sample_agent.id, Decimal(amount), f"credit {amount}")
        clock.advance(minutes=1)

    page = balance_service.list_balance_logs(sample_agent.id, page=2, page_size=2)

    assert page.total == 3
    assert page.page == 2
    assert [e.amount for e in page.entries] == [Decimal("1.00")]


def test_list_balance_logs_empty(balance_service, sample_agent):
    """Test the balance log of an agent without changes."""
    page = balance_service.list_balance_logs(sample_agent.id)

    assert page.total == 0
    assert page.entries == []


def test_list_balance_logs_unknown_agent(balance_service):
    """Test the balance log of a nonexistent agent."""
    with pytest.raises(AgentNotFoundError):
        balance_service.list_balance_logs(99)


@pytest.mark.parametrize("page,page_size", [(0, 20), (1, 0)])
def test_list_balance_logs_invalid_page(balance_service, sample_agent, page, page_size):
    """Test that page and page size below 1 are rejected."""
    with pytest.raises(ValidationError):
        balance_service.list_balance_logs(sample_agent.id, page=page, page_size=page_size)
