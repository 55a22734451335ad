"""Tests for the withdrawal settlement workflow."""

import re
import threading

import pytest
from datetime import datetime
from decimal import Decimal

from shiftledger.domain.entities import WithdrawalStatus
from shiftledger.domain.errors import (
    AgentNotFoundError,
    DuplicateRequestError,
    InsufficientBalanceError,
    InvalidTransitionError,
    ValidationError,
    WithdrawalNotFoundError,
)
from shiftledger.domain.withdrawal import generate_withdrawal_id


def _race(*targets):
    """Start every target behind one barrier and collect their outcomes."""
    barrier = threading.Barrier(len(targets))
    outcomes = []
    lock = threading.Lock()

    def run(name, target):
        barrier.wait()
        try:
            target()
            result = (name, "ok")
        except InvalidTransitionError:
            result = (name, "conflict")
        except Exception as e:
            result = (name, repr(e))
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=run, args=(name, target)) for name, target in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def test_request_does_not_touch_balance(withdrawal_service, agent_service, funded_agent, clock):
    """Test that a request reserves the amount without deducting it."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("50.00"), "rent")

    w = withdrawal_service.get_withdrawal(withdrawal_id)
    assert w.status == WithdrawalStatus.PENDING
    assert w.amount == Decimal("50.00")
    assert w.platform_fee == Decimal("0.00")
    assert w.final_amount == Decimal("50.00")
    assert w.description == "rent"
    assert w.created_at == clock.now

    agent = agent_service.get_agent(funded_agent.id)
    assert agent.available_balance == Decimal("200.00")
    assert agent.pending_withdrawals == Decimal("50.00")


def test_request_id_format(withdrawal_service, funded_agent):
    """Test the WD-prefixed request ID format."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("10.00"))

    assert re.fullmatch(r"WD\d{13}[A-Z0-9]{4}", withdrawal_id)


def test_generated_ids_differ():
    """Test that IDs generated in the same millisecond still differ."""
    now = datetime(2024, 3, 15, 9, 0)
    ids = {generate_withdrawal_id(now) for _ in range(20)}
    assert len(ids) > 1


@pytest.mark.parametrize("amount", ["0", "-5", "0.50", "10.001", "12.345", "NaN"])
def test_request_invalid_amount(withdrawal_service, funded_agent, amount):
    """Test that non-positive, sub-minimum, sub-cent and non-numeric amounts are rejected."""
    with pytest.raises(ValidationError):
        withdrawal_service.request_withdrawal(funded_agent.id, Decimal(amount))


@pytest.mark.parametrize("amount", ["60.100", "60.1", "60.10000"])
def test_request_trailing_zeros_accepted(withdrawal_service, funded_agent, amount):
    """Test that trailing zeros past the cent do not make an amount invalid."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal(amount))

    assert withdrawal_service.get_withdrawal(withdrawal_id).amount == Decimal("60.10")


def test_request_minimum_is_accepted(withdrawal_service, funded_agent):
    """Test that exactly the minimum amount may be requested."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("1"))

    assert withdrawal_service.get_withdrawal(withdrawal_id).amount == Decimal("1.00")


def test_request_more_than_balance(withdrawal_service, funded_agent):
    """Test requesting more than the available balance."""
    with pytest.raises(InsufficientBalanceError):
        withdrawal_service.request_withdrawal(funded_agent.id, Decimal("200.01"))


def test_request_unknown_agent(withdrawal_service):
    """Test requesting a withdrawal for a nonexistent agent."""
    with pytest.raises(AgentNotFoundError):
        withdrawal_service.request_withdrawal(55, Decimal("10.00"))


def test_duplicate_within_window(withdrawal_service, funded_agent, clock):
    """Test that the same amount within five minutes is a duplicate."""
    withdrawal_service.request_withdrawal(funded_agent.id, Decimal("25.00"))
    clock.advance(minutes=4)

    with pytest.raises(DuplicateRequestError):
        withdrawal_service.request_withdrawal(funded_agent.id, Decimal("25.00"))


def test_different_amount_is_not_duplicate(withdrawal_service, funded_agent, clock):
    """Test that a different amount is never a duplicate."""
    withdrawal_service.request_withdrawal(funded_agent.id, Decimal("25.00"))
    clock.advance(seconds=30)

    withdrawal_service.request_withdrawal(funded_agent.id, Decimal("26.00"))


def test_same_amount_after_window(withdrawal_service, funded_agent, clock):
    """Test that the same amount is accepted once the window has passed."""
    withdrawal_service.request_withdrawal(funded_agent.id, Decimal("25.00"))
    clock.advance(minutes=6)

    withdrawal_service.request_withdrawal(funded_agent.id, Decimal("25.00"))


def test_same_amount_after_settlement(withdrawal_service, funded_agent, clock):
    """Test that a rejected request no longer blocks the same amount."""
    first = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("25.00"))
    withdrawal_service.reject(first, approver_id=1, reason="wrong account")
    clock.advance(minutes=1)

    withdrawal_service.request_withdrawal(funded_agent.id, Decimal("25.00"))


def test_approve_deducts_balance(withdrawal_service, agent_service, funded_agent, clock):
    """Test that approval moves the amount out of the balance."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("80.00"))
    clock.advance(hours=1)

    w = withdrawal_service.approve(withdrawal_id, approver_id=9, notes="ok")

    assert w.status == WithdrawalStatus.APPROVED
    assert w.processed_by == 9
    assert w.processed_at == clock.now
    assert w.notes == "ok"
    agent = agent_service.get_agent(funded_agent.id)
    assert agent.available_balance == Decimal("120.00")
    assert agent.total_withdrawals == Decimal("80.00")
    assert agent.pending_withdrawals == Decimal("0.00")


def test_request_then_approve_scenario(withdrawal_service, agent_service):
    """Test request, approval and a rejected second approval end to end."""
    agent_id = agent_service.create_agent(username="carol", initial_balance=Decimal("100.00"))

    withdrawal_id = withdrawal_service.request_withdrawal(agent_id, Decimal("60.00"))
    assert agent_service.get_agent(agent_id).available_balance == Decimal("100.00")

    withdrawal_service.approve(withdrawal_id, approver_id=1)
    assert agent_service.get_agent(agent_id).available_balance == Decimal("40.00")

    with pytest.raises(InvalidTransitionError):
        withdrawal_service.approve(withdrawal_id, approver_id=1)
    assert agent_service.get_agent(agent_id).available_balance == Decimal("40.00")


def test_approve_twice(withdrawal_service, agent_service, funded_agent):
    """Test that approving twice deducts once."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("80.00"))
    withdrawal_service.approve(withdrawal_id, approver_id=9)

    with pytest.raises(InvalidTransitionError):
        withdrawal_service.approve(withdrawal_id, approver_id=9)

    assert agent_service.get_agent(funded_agent.id).available_balance == Decimal("120.00")


def test_approve_rechecks_balance(withdrawal_service, agent_service, funded_agent, clock):
    """Test that approval fails when earlier approvals used up the balance."""
    first = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("150.00"))
    second = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("100.00"))
    withdrawal_service.approve(first, approver_id=1)

    with pytest.raises(InsufficientBalanceError):
        withdrawal_service.approve(second, approver_id=1)

    assert withdrawal_service.get_withdrawal(second).status == WithdrawalStatus.PENDING
    assert agent_service.get_agent(funded_agent.id).available_balance == Decimal("50.00")


def test_approve_missing(withdrawal_service):
    """Test approving a nonexistent withdrawal."""
    with pytest.raises(WithdrawalNotFoundError):
        withdrawal_service.approve("WD0000000000000XXXX", approver_id=1)


def test_concurrent_approvals_deduct_once(withdrawal_service, agent_service, funded_agent):
    """Test that two simultaneous approvals deduct the amount once."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("120.00"))

    outcomes = _race(
        ("approve", lambda: withdrawal_service.approve(withdrawal_id, approver_id=1)),
        ("approve", lambda: withdrawal_service.approve(withdrawal_id, approver_id=2)),
    )

    assert sorted(outcomes) == [("approve", "conflict"), ("approve", "ok")]
    agent = agent_service.get_agent(funded_agent.id)
    assert agent.available_balance == Decimal("80.00")
    assert agent.total_withdrawals == Decimal("120.00")


def test_concurrent_approvals_and_completion_deduct_once(withdrawal_service, agent_service):
    """Test that racing approvals and a completion settle the request exactly once."""
    agent_id = agent_service.create_agent(username="carol", initial_balance=Decimal("100.00"))
    withdrawal_id = withdrawal_service.request_withdrawal(agent_id, Decimal("60.00"))

    outcomes = _race(
        ("approve", lambda: withdrawal_service.approve(withdrawal_id, approver_id=1)),
        ("approve", lambda: withdrawal_service.approve(withdrawal_id, approver_id=2)),
        ("complete", lambda: withdrawal_service.complete(withdrawal_id, approver_id=3)),
    )

    # Completion is valid from pending and from approved, so it always wins
    # its race. At most one approval lands before it; every loser conflicts.
    assert ("complete", "ok") in outcomes
    approvals = sorted(result for name, result in outcomes if name == "approve")
    assert approvals in (["conflict", "conflict"], ["conflict", "ok"])
    assert withdrawal_service.get_withdrawal(withdrawal_id).status == WithdrawalStatus.COMPLETED
    agent = agent_service.get_agent(agent_id)
    assert agent.available_balance == Decimal("40.00")
    assert agent.total_withdrawals == Decimal("60.00")
    assert agent.total_withdrawn == Decimal("60.00")
    assert agent.pending_withdrawals == Decimal("0.00")


def test_reject(withdrawal_service, agent_service, funded_agent):
    """Test that rejection releases the reservation and keeps the balance."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("30.00"))

    w = withdrawal_service.reject(withdrawal_id, approver_id=4, reason="  duplicate  ")

    assert w.status == WithdrawalStatus.REJECTED
    assert w.reject_reason == "duplicate"
    assert w.processed_by == 4
    agent = agent_service.get_agent(funded_agent.id)
    assert agent.available_balance == Decimal("200.00")
    assert agent.pending_withdrawals == Decimal("0.00")


@pytest.mark.parametrize("reason", ["", "   "])
def test_reject_requires_reason(withdrawal_service, funded_agent, reason):
    """Test that a rejection needs a non-blank reason."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("30.00"))

    with pytest.raises(ValidationError):
        withdrawal_service.reject(withdrawal_id, approver_id=4, reason=reason)


def test_rejected_is_terminal(withdrawal_service, funded_agent):
    """Test that a rejected request cannot be approved or completed."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("30.00"))
    withdrawal_service.reject(withdrawal_id, approver_id=4, reason="no")

    with pytest.raises(InvalidTransitionError):
        withdrawal_service.approve(withdrawal_id, approver_id=4)
    with pytest.raises(InvalidTransitionError):
        withdrawal_service.complete(withdrawal_id)


def test_cannot_reject_approved(withdrawal_service, funded_agent):
    """Test that an approved request can no longer be rejected."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("30.00"))
    withdrawal_service.approve(withdrawal_id, approver_id=4)

    with pytest.raises(InvalidTransitionError):
        withdrawal_service.reject(withdrawal_id, approver_id=4, reason="too late")


def test_complete_approved_deducts_nothing_more(withdrawal_service, agent_service, funded_agent, clock):
    """Test that completing an approved request only records the payout."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("60.00"))
    withdrawal_service.approve(withdrawal_id, approver_id=2)
    clock.advance(days=1)

    w = withdrawal_service.complete(withdrawal_id, notes="paid")

    assert w.status == WithdrawalStatus.COMPLETED
    assert w.completed_at == clock.now
    assert w.processed_by == 2
    assert w.notes == "paid"
    agent = agent_service.get_agent(funded_agent.id)
    assert agent.available_balance == Decimal("140.00")
    assert agent.total_withdrawals == Decimal("60.00")
    assert agent.total_withdrawn == Decimal("60.00")


def test_complete_from_pending_deducts_once(withdrawal_service, agent_service, funded_agent):
    """Test that completing a pending request performs the approval deduction."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("60.00"))

    w = withdrawal_service.complete(withdrawal_id, approver_id=3)

    assert w.status == WithdrawalStatus.COMPLETED
    assert w.processed_by == 3
    agent = agent_service.get_agent(funded_agent.id)
    assert agent.available_balance == Decimal("140.00")
    assert agent.pending_withdrawals == Decimal("0.00")
    assert agent.total_withdrawn == Decimal("60.00")


def test_complete_twice(withdrawal_service, agent_service, funded_agent):
    """Test that completing twice deducts once."""
    withdrawal_id = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("60.00"))
    withdrawal_service.complete(withdrawal_id, approver_id=3)

    with pytest.raises(InvalidTransitionError):
        withdrawal_service.complete(withdrawal_id, approver_id=3)

    assert agent_service.get_agent(funded_agent.id).available_balance == Decimal("140.00")


def test_list_newest_first_and_paged(withdrawal_service, funded_agent, clock):
    """Test that listing is newest first and paged."""
    ids = []
    for amount in ("10.00", "11.00", "12.00"):
        ids.append(withdrawal_service.request_withdrawal(funded_agent.id, Decimal(amount)))
        clock.advance(minutes=1)

    page = withdrawal_service.list_withdrawals(agent_id=funded_agent.id, page=1, page_size=2)

    assert page.total == 3
    assert [w.withdrawal_id for w in page.withdrawals] == [ids[2], ids[1]]


def test_list_by_status(withdrawal_service, funded_agent, clock):
    """Test filtering the listing by status."""
    first = withdrawal_service.request_withdrawal(funded_agent.id, Decimal("10.00"))
    withdrawal_service.request_withdrawal(funded_agent.id, Decimal("11.00"))
    withdrawal_service.approve(first, approver_id=1)

    page = withdrawal_service.list_withdrawals(status=WithdrawalStatus.APPROVED)

    assert [w.withdrawal_id for w in page.withdrawals] == [first]


def test_list_invalid_page(withdrawal_service):
    """Test that page 0 is rejected."""
    with pytest.raises(ValidationError):
        withdrawal_service.list_withdrawals(page=0)


def test_get_missing(withdrawal_service):
    """Test looking up a nonexistent withdrawal."""
    assert withdrawal_service.get_withdrawal("nope") is None
