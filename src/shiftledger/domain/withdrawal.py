"""Withdrawal settlement workflow.

A request neither reserves nor deducts money: the balance is
checked when the agent asks and checked again, then debited, when an
operator approves (or completes a request directly from pending).
"""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from shiftledger.config import LedgerSettings
from shiftledger.database.base import Database
from shiftledger.domain.balance import BalanceReconciler
from shiftledger.domain.earnings import CENT, round_money
from shiftledger.domain.entities import WithdrawalRequest, WithdrawalStatus
from shiftledger.domain.errors import (
    AgentNotFoundError,
    DuplicateRequestError,
    InsufficientBalanceError,
    InvalidTransitionError,
    ValidationError,
    WithdrawalNotFoundError,
    agent_not_found,
    insufficient_balance,
    invalid_transition,
    withdrawal_not_found,
)

logger = logging.getLogger(__name__)

WITHDRAWAL_TRANSITIONS: dict[WithdrawalStatus, frozenset[WithdrawalStatus]] = {
    WithdrawalStatus.PENDING: frozenset(
        {WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED, WithdrawalStatus.COMPLETED}
    ),
    WithdrawalStatus.APPROVED: frozenset({WithdrawalStatus.COMPLETED}),
    WithdrawalStatus.REJECTED: frozenset(),
    WithdrawalStatus.COMPLETED: frozenset(),
}

_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_withdrawal_id(now: datetime) -> str:
    """Opaque request ID: 'WD', epoch milliseconds, four random characters."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(4))
    return f"WD{int(now.timestamp() * 1000)}{suffix}"


@dataclass(frozen=True)
class WithdrawalPage:
    withdrawals: list[WithdrawalRequest]
    total: int


class WithdrawalService:
    """Service for requesting and settling withdrawals."""

    def __init__(
        self,
        db: Database,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        reconciler: Optional[BalanceReconciler] = None,
    ):
        """Initialize withdrawal service.

        Args:
            db: Database instance
            settings: Ledger settings (defaults from environment)
            clock: Returns the current local time (defaults to datetime.now)
            reconciler: Balance engine (defaults to one on the same database)
        """
        self.db = db
        self.settings = settings or LedgerSettings.from_env()
        self.clock = clock or datetime.now
        self.reconciler = reconciler or BalanceReconciler(db)

    def _validate_amount(self, amount: Decimal) -> Decimal:
        try:
            amount = Decimal(amount)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"Invalid withdrawal amount: {amount!r}")
        if not amount.is_finite():
            raise ValidationError("Withdrawal amount must be a finite number")
        if amount <= 0:
            raise ValidationError("Withdrawal amount must be greater than 0")
        if amount != amount.quantize(CENT):
            raise ValidationError("Withdrawal amount must have at most two decimal places")
        if amount < self.settings.minimum_withdrawal:
            raise ValidationError(
                f"Minimum withdrawal amount is {self.settings.minimum_withdrawal:.2f}"
            )
        return round_money(amount)

    def request_withdrawal(
        self, agent_id: int, amount: Decimal, description: Optional[str] = None
    ) -> str:
        """Create a pending withdrawal request.

        The balance is checked but not deducted.

        Args:
            agent_id: Requesting agent
            amount: Amount to withdraw
            description: Optional free text from the agent

        Returns:
            The new withdrawal ID

        Raises:
            ValidationError: If the amount is invalid or below the minimum
            AgentNotFoundError: If the agent does not exist
            InsufficientBalanceError: If the amount exceeds the available balance
            DuplicateRequestError: If the same amount is already pending from
                a request inside the duplicate window
        """
        amount = self._validate_amount(amount)
        now = self.clock()

        with self.db.transaction():
            agent = self.db.get_agent(agent_id, for_update=True)
            if agent is None:
                raise AgentNotFoundError(agent_not_found(agent_id))

            if amount > agent.available_balance:
                raise InsufficientBalanceError(insufficient_balance(agent.available_balance, amount))

            since = now - self.settings.duplicate_window
            if self.db.count_recent_pending_withdrawals(agent_id, amount, since) > 0:
                minutes = int(self.settings.duplicate_window.total_seconds() // 60)
                raise DuplicateRequestError(
                    f"A withdrawal of {amount:.2f} is already pending; "
                    f"wait {minutes} minutes before submitting the same amount again"
                )

            platform_fee = round_money(amount * self.settings.platform_fee_rate)
            withdrawal_id = self.db.create_withdrawal(
                withdrawal_id=generate_withdrawal_id(now),
                agent_id=agent_id,
                amount=amount,
                platform_fee=platform_fee,
                created_at=now,
                description=description,
            )
            self.db.update_agent(agent_id, pending_withdrawals=agent.pending_withdrawals + amount)

        logger.info("Agent %s requested withdrawal %s of %s", agent_id, withdrawal_id, amount)
        return withdrawal_id

    def _locked_for_transition(self, withdrawal_id: str, target: WithdrawalStatus) -> WithdrawalRequest:
        """Lock a withdrawal and check that it may move to ``target``. Runs inside a transaction."""
        withdrawal = self.db.get_withdrawal(withdrawal_id, for_update=True)
        if withdrawal is None:
            raise WithdrawalNotFoundError(withdrawal_not_found(withdrawal_id))
        if target not in WITHDRAWAL_TRANSITIONS[withdrawal.status]:
            raise InvalidTransitionError(
                invalid_transition(f"withdrawal {withdrawal_id}", withdrawal.status.value, target.value)
            )
        return withdrawal

    def approve(
        self, withdrawal_id: str, approver_id: int, notes: Optional[str] = None
    ) -> WithdrawalRequest:
        """Approve a pending request and deduct its amount from the balance.

        Raises:
            WithdrawalNotFoundError: If the request does not exist
            InvalidTransitionError: If the request is not pending
            InsufficientBalanceError: If the balance no longer covers the amount
        """
        now = self.clock()
        with self.db.transaction():
            withdrawal = self._locked_for_transition(withdrawal_id, WithdrawalStatus.APPROVED)
            self.reconciler.deduct_withdrawal(
                withdrawal.agent_id,
                withdrawal.amount,
                f"Withdrawal {withdrawal_id} approved",
                now=now,
            )
            updated = self.db.update_withdrawal(
                withdrawal_id,
                status=WithdrawalStatus.APPROVED,
                processed_by=approver_id,
                processed_at=now,
                notes=notes,
                updated_at=now,
            )

        logger.info("Withdrawal %s approved by %s", withdrawal_id, approver_id)
        return updated

    def reject(self, withdrawal_id: str, approver_id: int, reason: str) -> WithdrawalRequest:
        """Reject a pending request. The balance is not touched.

        Raises:
            ValidationError: If no reason is given
            WithdrawalNotFoundError: If the request does not exist
            InvalidTransitionError: If the request is not pending
        """
        if reason is None or not reason.strip():
            raise ValidationError("A reason is required to reject a withdrawal")

        now = self.clock()
        with self.db.transaction():
            withdrawal = self._locked_for_transition(withdrawal_id, WithdrawalStatus.REJECTED)
            agent = self.db.get_agent(withdrawal.agent_id, for_update=True)
            if agent is None:
                raise AgentNotFoundError(agent_not_found(withdrawal.agent_id))
            self.db.update_agent(
                withdrawal.agent_id,
                pending_withdrawals=max(agent.pending_withdrawals - withdrawal.amount, Decimal("0.00")),
            )
            updated = self.db.update_withdrawal(
                withdrawal_id,
                status=WithdrawalStatus.REJECTED,
                processed_by=approver_id,
                processed_at=now,
                reject_reason=reason.strip(),
                updated_at=now,
            )

        logger.info("Withdrawal %s rejected by %s: %s", withdrawal_id, approver_id, reason)
        return updated

    def complete(
        self,
        withdrawal_id: str,
        approver_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> WithdrawalRequest:
        """Mark a request as paid out.

        A pending request is approved (and debited) on the way, so the
        amount leaves the balance exactly once on either path.

        Raises:
            WithdrawalNotFoundError: If the request does not exist
            InvalidTransitionError: If the request is rejected or already completed
            InsufficientBalanceError: If completing from pending and the
                balance no longer covers the amount
        """
        now = self.clock()
        with self.db.transaction():
            withdrawal = self._locked_for_transition(withdrawal_id, WithdrawalStatus.COMPLETED)
            changes = {}
            if withdrawal.status is WithdrawalStatus.PENDING:
                self.reconciler.deduct_withdrawal(
                    withdrawal.agent_id,
                    withdrawal.amount,
                    f"Withdrawal {withdrawal_id} completed",
                    now=now,
                )
                changes["processed_by"] = approver_id
                changes["processed_at"] = now

            agent = self.db.get_agent(withdrawal.agent_id, for_update=True)
            if agent is None:
                raise AgentNotFoundError(agent_not_found(withdrawal.agent_id))
            self.db.update_agent(
                withdrawal.agent_id,
                total_withdrawn=agent.total_withdrawn + withdrawal.amount,
            )
            if notes is not None:
                changes["notes"] = notes
            updated = self.db.update_withdrawal(
                withdrawal_id,
                status=WithdrawalStatus.COMPLETED,
                completed_at=now,
                updated_at=now,
                **changes,
            )

        logger.info("Withdrawal %s completed", withdrawal_id)
        return updated

    def get_withdrawal(self, withdrawal_id: str) -> Optional[WithdrawalRequest]:
        """Get withdrawal by ID.

        Returns:
            Withdrawal entity or None if not found
        """
        return self.db.get_withdrawal(withdrawal_id)

    def list_withdrawals(
        self,
        agent_id: Optional[int] = None,
        status: Optional[WithdrawalStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> WithdrawalPage:
        """Page through withdrawals, newest first.

        Raises:
            ValidationError: If paging arguments are invalid
        """
        if page < 1:
            raise ValidationError("Page must be 1 or greater")
        if page_size < 1:
            raise ValidationError("Page size must be 1 or greater")
        withdrawals, total = self.db.list_withdrawals(
            agent_id=agent_id,
            status=status,
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        return WithdrawalPage(withdrawals=withdrawals, total=total)
