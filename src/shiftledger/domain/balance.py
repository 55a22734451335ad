"""Balance reconciliation engine."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from shiftledger.database.base import Database
from shiftledger.domain.entities import AgentAccount, HistoryAction, HistoryLogEntry
from shiftledger.domain.errors import (
    AgentNotFoundError,
    InsufficientBalanceError,
    ValidationError,
    agent_not_found,
    insufficient_balance,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


@dataclass(frozen=True)
class BalanceChange:
    """Before/after view of one balance mutation."""

    balance_before: Decimal
    balance_after: Decimal
    amount: Decimal
    history_id: Optional[int] = None


class BalanceReconciler:
    """Applies earnings and settlements to an agent's running balance.

    Every method joins the caller's transaction, so the balance update
    commits or rolls back together with the attendance, resync or
    settlement step that triggered it. Only the audit entry is allowed to
    fail on its own.
    """

    def __init__(self, db: Database):
        self.db = db

    def _locked_agent(self, agent_id: int) -> AgentAccount:
        agent = self.db.get_agent(agent_id, for_update=True)
        if agent is None:
            raise AgentNotFoundError(agent_not_found(agent_id))
        return agent

    def apply_earnings(
        self,
        agent_id: int,
        delta: Decimal,
        description: str,
        *,
        now: datetime,
        month_total: Optional[Decimal] = None,
    ) -> BalanceChange:
        """Add ``delta`` to balance, lifetime and monthly earnings.

        Args:
            agent_id: Agent to credit (or debit, for a negative delta)
            delta: Signed amount
            description: Audit text
            now: Time of the triggering action
            month_total: Recomputed month earnings to store instead of
                adding ``delta`` to the stored value

        Raises:
            InsufficientBalanceError: If the balance would become negative
        """
        with self.db.transaction():
            agent = self._locked_agent(agent_id)
            current_month = now.date().replace(day=1)

            if month_total is not None:
                new_month_earnings = month_total
            elif agent.earnings_month == current_month:
                new_month_earnings = agent.current_month_earnings + delta
            else:
                # First booking of a new month restarts the counter
                new_month_earnings = delta

            balance_before = agent.available_balance
            balance_after = balance_before + delta
            if balance_after < ZERO:
                raise InsufficientBalanceError(insufficient_balance(balance_before, -delta))

            changes = {}
            if delta != ZERO:
                changes["available_balance"] = balance_after
                changes["total_earnings"] = agent.total_earnings + delta
            if new_month_earnings != agent.current_month_earnings or agent.earnings_month != current_month:
                changes["current_month_earnings"] = new_month_earnings
                changes["earnings_month"] = current_month
            if changes:
                self.db.update_agent(agent_id, **changes)

            history_id = None
            if delta != ZERO:
                history_id = self.db.append_history(
                    agent_id,
                    HistoryAction.BALANCE_CHANGE,
                    now,
                    balance_before=balance_before,
                    balance_after=balance_after,
                    amount=delta,
                    description=description,
                )
            return BalanceChange(
                balance_before=balance_before,
                balance_after=balance_after,
                amount=delta,
                history_id=history_id,
            )

    def deduct_withdrawal(
        self,
        agent_id: int,
        amount: Decimal,
        description: str,
        *,
        now: datetime,
    ) -> BalanceChange:
        """Take an approved withdrawal out of the available balance.

        Moves ``amount`` from the pending counter to the lifetime
        withdrawals counter.

        Raises:
            InsufficientBalanceError: If the balance no longer covers ``amount``
        """
        with self.db.transaction():
            agent = self._locked_agent(agent_id)
            balance_before = agent.available_balance
            if amount > balance_before:
                raise InsufficientBalanceError(insufficient_balance(balance_before, amount))

            balance_after = balance_before - amount
            self.db.update_agent(
                agent_id,
                available_balance=balance_after,
                total_withdrawals=agent.total_withdrawals + amount,
                pending_withdrawals=max(agent.pending_withdrawals - amount, ZERO),
            )
            history_id = self.db.append_history(
                agent_id,
                HistoryAction.BALANCE_CHANGE,
                now,
                balance_before=balance_before,
                balance_after=balance_after,
                amount=-amount,
                description=description,
            )
            return BalanceChange(
                balance_before=balance_before,
                balance_after=balance_after,
                amount=-amount,
                history_id=history_id,
            )

    def adjust_balance(
        self,
        agent_id: int,
        amount: Decimal,
        description: str,
        *,
        now: datetime,
    ) -> BalanceChange:
        """Apply an operator credit or debit to the available balance.

        Earnings counters are left alone, so a later resync does not undo
        the adjustment.

        Raises:
            InsufficientBalanceError: If a debit exceeds the balance
        """
        with self.db.transaction():
            agent = self._locked_agent(agent_id)
            balance_before = agent.available_balance
            balance_after = balance_before + amount
            if balance_after < ZERO:
                raise InsufficientBalanceError(insufficient_balance(balance_before, -amount))

            self.db.update_agent(agent_id, available_balance=balance_after)
            history_id = self.db.append_history(
                agent_id,
                HistoryAction.BALANCE_CHANGE,
                now,
                balance_before=balance_before,
                balance_after=balance_after,
                amount=amount,
                description=description,
            )
            logger.info("Adjusted balance of agent %s by %s: %s", agent_id, amount, description)
            return BalanceChange(
                balance_before=balance_before,
                balance_after=balance_after,
                amount=amount,
                history_id=history_id,
            )


@dataclass(frozen=True)
class BalanceLogPage:
    entries: list[HistoryLogEntry]
    total: int
    page: int
    page_size: int


class BalanceService:
    """Operator view of agent balances: adjustments and the balance log."""

    def __init__(
        self,
        db: Database,
        clock: Optional[Callable[[], datetime]] = None,
        reconciler: Optional[BalanceReconciler] = None,
    ):
        self.db = db
        self.clock = clock or datetime.now
        self.reconciler = reconciler or BalanceReconciler(db)

    def adjust_balance(self, agent_id: int, amount: Decimal, description: str) -> BalanceChange:
        """Credit (positive amount) or debit (negative amount) an agent's balance.

        Args:
            agent_id: Agent to adjust
            amount: Signed amount, at most two decimal places
            description: Reason, stored in the balance log

        Returns:
            The applied change

        Raises:
            ValidationError: If the amount is zero, has sub-cent digits, or the
                description is blank
            AgentNotFoundError: If the agent does not exist
            InsufficientBalanceError: If a debit exceeds the balance
        """
        if not amount.is_finite() or amount == ZERO:
            raise ValidationError("Adjustment amount must be a non-zero number")
        if amount != amount.quantize(CENT):
            raise ValidationError("Adjustment amount must have at most two decimal places")
        description = (description or "").strip()
        if not description:
            raise ValidationError("Adjustment description must not be empty")

        return self.reconciler.adjust_balance(agent_id, amount, description, now=self.clock())

    def list_balance_logs(self, agent_id: int, page: int = 1, page_size: int = 20) -> BalanceLogPage:
        """List an agent's balance changes, newest first.

        Raises:
            ValidationError: If page or page_size is below 1
            AgentNotFoundError: If the agent does not exist
        """
        if page < 1:
            raise ValidationError("Page must be 1 or greater")
        if page_size < 1:
            raise ValidationError("Page size must be 1 or greater")

        with self.db.transaction():
            if self.db.get_agent(agent_id) is None:
                raise AgentNotFoundError(agent_not_found(agent_id))
            entries, total = self.db.list_history_page(
                agent_id,
                action_types=[HistoryAction.BALANCE_CHANGE],
                offset=(page - 1) * page_size,
                limit=page_size,
            )
        return BalanceLogPage(entries=entries, total=total, page=page, page_size=page_size)
