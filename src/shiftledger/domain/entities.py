"""Domain model entities for shiftledger.

These are pure data classes representing ledger concepts, independent of
the database schema. Services read them from the Database interface and
never touch ORM rows directly.
"""

from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class AgentStatus(str, Enum):
    """Whether an agent takes part in attendance and batch resync."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class AttendanceStatus(str, Enum):
    """Today's clock state of an agent."""

    NOT_CLOCKED = "not_clocked"
    CLOCKED_IN = "clocked_in"
    CLOCKED_OUT = "clocked_out"


class HistoryAction(str, Enum):
    """Kind of action recorded in the history log."""

    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"
    BALANCE_CHANGE = "balance_change"


class WithdrawalStatus(str, Enum):
    """Settlement state of a withdrawal request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


@dataclass(frozen=True)
class AgentAccount:
    """Agent account with balance counters and today's attendance state."""

    id: int
    username: str
    status: AgentStatus
    hourly_rate: Decimal
    available_balance: Decimal
    total_earnings: Decimal
    current_month_earnings: Decimal
    earnings_month: Optional[date]
    total_withdrawals: Decimal
    pending_withdrawals: Decimal
    total_withdrawn: Decimal
    today_status: AttendanceStatus
    today_clock_in_time: Optional[datetime]
    today_clock_out_time: Optional[datetime]
    today_work_hours: Decimal
    today_total_earnings: Decimal
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class DailyEarningsRecord:
    """Earnings snapshot for one agent on one calendar date."""

    id: int
    agent_id: int
    date: date
    work_hours: Decimal
    hourly_rate: Decimal
    base_earnings: Decimal
    commission_earnings: Decimal
    bonus_earnings: Decimal
    total_earnings: Decimal
    clock_in_time: Optional[datetime]
    clock_out_time: Optional[datetime]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class HistoryLogEntry:
    """Audit record of an attendance or balance-changing action."""

    id: int
    agent_id: int
    action_type: HistoryAction
    action_date: date
    action_time: datetime
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    work_hours: Optional[Decimal] = None
    hourly_rate: Optional[Decimal] = None
    total_earnings: Optional[Decimal] = None
    balance_before: Optional[Decimal] = None
    balance_after: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    agent_username: Optional[str] = None


@dataclass(frozen=True)
class WithdrawalRequest:
    """Withdrawal request entity."""

    withdrawal_id: str
    agent_id: int
    amount: Decimal
    platform_fee: Decimal
    final_amount: Decimal
    status: WithdrawalStatus
    description: Optional[str]
    notes: Optional[str]
    reject_reason: Optional[str]
    processed_by: Optional[int]
    processed_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class EarningsTotals:
    """Aggregate of an agent's daily earnings rows."""

    total: Decimal
    month_total: Decimal
    work_days: int
