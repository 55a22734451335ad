"""Abstract ledger store interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional, Any
from datetime import date, datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from shiftledger.domain.entities import (
    AgentAccount,
    AgentStatus,
    DailyEarningsRecord,
    EarningsTotals,
    HistoryAction,
    HistoryLogEntry,
    WithdrawalRequest,
    WithdrawalStatus,
)


class Database(ABC):
    """Abstract ledger store for shiftledger.

    Every method runs inside ``transaction()``: called on its own it is a
    transaction of its own, called inside an open ``transaction()`` on the
    same thread it joins that transaction.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Any]:
        """Open (or join) the calling thread's transaction.

        Commits when the outermost block exits normally and rolls back on any
        exception. Infrastructure failures surface as StoreUnavailableError.
        """
        pass

    # Agent operations
    @abstractmethod
    def create_agent(
        self,
        username: str,
        hourly_rate: Decimal,
        available_balance: Decimal = Decimal("0.00"),
    ) -> int:
        """Create an agent account. Returns agent ID."""
        pass

    @abstractmethod
    def get_agent(self, agent_id: int, for_update: bool = False) -> Optional[AgentAccount]:
        """Get agent by ID, optionally locking the row for the transaction."""
        pass

    @abstractmethod
    def get_agent_by_username(self, username: str) -> Optional[AgentAccount]:
        """Get agent by username."""
        pass

    @abstractmethod
    def list_agents(self, status: Optional[AgentStatus] = None) -> list[AgentAccount]:
        """List agents ordered by ID, optionally filtered by status."""
        pass

    @abstractmethod
    def count_agents(self) -> int:
        """Count all agents."""
        pass

    @abstractmethod
    def update_agent(self, agent_id: int, **changes: Any) -> AgentAccount:
        """Set the given columns on an agent and return the updated entity."""
        pass

    @abstractmethod
    def update_hourly_rates(self, hourly_rate: Decimal, agent_ids: Optional[list[int]] = None) -> int:
        """Set the hourly rate on the given agents, or on all agents. Returns rows updated."""
        pass

    # Daily earnings operations
    @abstractmethod
    def get_daily_earnings(self, agent_id: int, day: date) -> Optional[DailyEarningsRecord]:
        """Get the earnings snapshot of one agent for one date."""
        pass

    @abstractmethod
    def upsert_daily_earnings(
        self,
        agent_id: int,
        day: date,
        work_hours: Decimal,
        hourly_rate: Decimal,
        base_earnings: Decimal,
        total_earnings: Decimal,
        clock_in_time: Optional[datetime],
        clock_out_time: Optional[datetime],
        commission_earnings: Decimal = Decimal("0.00"),
        bonus_earnings: Decimal = Decimal("0.00"),
    ) -> DailyEarningsRecord:
        """Insert the (agent, date) snapshot or overwrite the existing one."""
        pass

    @abstractmethod
    def delete_daily_earnings(self, agent_id: int, day: date) -> int:
        """Delete the (agent, date) snapshot. Returns number of rows removed."""
        pass

    @abstractmethod
    def list_daily_earnings(
        self,
        agent_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[DailyEarningsRecord]:
        """List an agent's snapshots, newest date first."""
        pass

    @abstractmethod
    def sum_daily_earnings(self, agent_id: int, month_start: date) -> EarningsTotals:
        """Sum all of an agent's snapshots, and those dated in the month starting at month_start."""
        pass

    # History log operations
    @abstractmethod
    def append_history(
        self,
        agent_id: int,
        action_type: HistoryAction,
        action_time: datetime,
        **fields: Any,
    ) -> Optional[int]:
        """Append an audit entry, best-effort.

        A failed insert is logged and rolled back on its own; the surrounding
        transaction is unaffected. Returns the entry ID, or None on failure.
        """
        pass

    @abstractmethod
    def list_history(
        self,
        agent_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        action_types: Optional[list[HistoryAction]] = None,
    ) -> list[HistoryLogEntry]:
        """List audit entries, newest first."""
        pass

    @abstractmethod
    def list_history_page(
        self,
        agent_id: int,
        action_types: Optional[list[HistoryAction]] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> tuple[list[HistoryLogEntry], int]:
        """List one agent's audit entries newest first. Returns (page, total matching)."""
        pass

    @abstractmethod
    def delete_history_for_day(self, agent_id: int, day: date) -> int:
        """Delete an agent's audit entries for one date, best-effort. Returns rows removed."""
        pass

    @abstractmethod
    def delete_history_entry(self, entry_id: int) -> bool:
        """Delete one audit entry. Returns False if it did not exist."""
        pass

    # Withdrawal operations
    @abstractmethod
    def create_withdrawal(
        self,
        withdrawal_id: str,
        agent_id: int,
        amount: Decimal,
        platform_fee: Decimal,
        created_at: datetime,
        description: Optional[str] = None,
    ) -> str:
        """Create a pending withdrawal request. Returns its ID."""
        pass

    @abstractmethod
    def get_withdrawal(self, withdrawal_id: str, for_update: bool = False) -> Optional[WithdrawalRequest]:
        """Get withdrawal by ID, optionally locking the row for the transaction."""
        pass

    @abstractmethod
    def update_withdrawal(self, withdrawal_id: str, **changes: Any) -> WithdrawalRequest:
        """Set the given columns on a withdrawal and return the updated entity."""
        pass

    @abstractmethod
    def list_withdrawals(
        self,
        agent_id: Optional[int] = None,
        status: Optional[WithdrawalStatus] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> tuple[list[WithdrawalRequest], int]:
        """List withdrawals newest first. Returns (page, total matching)."""
        pass

    @abstractmethod
    def count_recent_pending_withdrawals(self, agent_id: int, amount: Decimal, since: datetime) -> int:
        """Count the agent's pending requests of exactly ``amount`` created after ``since``."""
        pass

    @abstractmethod
    def sum_withdrawals(self, status: WithdrawalStatus) -> Decimal:
        """Sum the amounts of all withdrawals in the given status."""
        pass
