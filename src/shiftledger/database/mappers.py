"""Mapper functions to convert SQLAlchemy models into domain entities.

This layer isolates the conversion logic so services never depend on ORM
rows or the session that loaded them.
"""

from decimal import Decimal
from typing import Optional

from shiftledger.domain import entities as domain
from shiftledger.database.models import (
    Agent as ORMAgent,
    DailyEarnings as ORMDailyEarnings,
    HistoryLog as ORMHistoryLog,
    Withdrawal as ORMWithdrawal,
)


def _money(value: Optional[Decimal]) -> Decimal:
    # SQLite hands back Numeric columns without their scale
    if value is None:
        return Decimal("0.00")
    return Decimal(value).quantize(Decimal("0.01"))


def _optional_money(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    return _money(value)


def agent_to_domain(orm_agent: ORMAgent) -> domain.AgentAccount:
    """Convert SQLAlchemy Agent model to domain AgentAccount entity."""
    return domain.AgentAccount(
        id=orm_agent.id,
        username=orm_agent.username,
        status=domain.AgentStatus(orm_agent.status),
        hourly_rate=_money(orm_agent.hourly_rate),
        available_balance=_money(orm_agent.available_balance),
        total_earnings=_money(orm_agent.total_earnings),
        current_month_earnings=_money(orm_agent.current_month_earnings),
        earnings_month=orm_agent.earnings_month,
        total_withdrawals=_money(orm_agent.total_withdrawals),
        pending_withdrawals=_money(orm_agent.pending_withdrawals),
        total_withdrawn=_money(orm_agent.total_withdrawn),
        today_status=domain.AttendanceStatus(orm_agent.today_status),
        today_clock_in_time=orm_agent.today_clock_in_time,
        today_clock_out_time=orm_agent.today_clock_out_time,
        today_work_hours=_money(orm_agent.today_work_hours),
        today_total_earnings=_money(orm_agent.today_total_earnings),
        created_at=orm_agent.created_at,
        updated_at=orm_agent.updated_at,
    )


def daily_earnings_to_domain(orm_record: ORMDailyEarnings) -> domain.DailyEarningsRecord:
    """Convert SQLAlchemy DailyEarnings model to domain DailyEarningsRecord entity."""
    return domain.DailyEarningsRecord(
        id=orm_record.id,
        agent_id=orm_record.agent_id,
        date=orm_record.date,
        work_hours=_money(orm_record.work_hours),
        hourly_rate=_money(orm_record.hourly_rate),
        base_earnings=_money(orm_record.base_earnings),
        commission_earnings=_money(orm_record.commission_earnings),
        bonus_earnings=_money(orm_record.bonus_earnings),
        total_earnings=_money(orm_record.total_earnings),
        clock_in_time=orm_record.clock_in_time,
        clock_out_time=orm_record.clock_out_time,
        created_at=orm_record.created_at,
        updated_at=orm_record.updated_at,
    )


def history_to_domain(
    orm_entry: ORMHistoryLog, agent_username: Optional[str] = None
) -> domain.HistoryLogEntry:
    """Convert SQLAlchemy HistoryLog model to domain HistoryLogEntry entity."""
    return domain.HistoryLogEntry(
        id=orm_entry.id,
        agent_id=orm_entry.agent_id,
        action_type=domain.HistoryAction(orm_entry.action_type),
        action_date=orm_entry.action_date,
        action_time=orm_entry.action_time,
        clock_in_time=orm_entry.clock_in_time,
        clock_out_time=orm_entry.clock_out_time,
        work_hours=_optional_money(orm_entry.work_hours),
        hourly_rate=_optional_money(orm_entry.hourly_rate),
        total_earnings=_optional_money(orm_entry.total_earnings),
        balance_before=_optional_money(orm_entry.balance_before),
        balance_after=_optional_money(orm_entry.balance_after),
        amount=_optional_money(orm_entry.amount),
        description=orm_entry.description,
        agent_username=agent_username,
    )


def withdrawal_to_domain(orm_withdrawal: ORMWithdrawal) -> domain.WithdrawalRequest:
    """Convert SQLAlchemy Withdrawal model to domain WithdrawalRequest entity."""
    return domain.WithdrawalRequest(
        withdrawal_id=orm_withdrawal.withdrawal_id,
        agent_id=orm_withdrawal.agent_id,
        amount=_money(orm_withdrawal.amount),
        platform_fee=_money(orm_withdrawal.platform_fee),
        final_amount=_money(orm_withdrawal.final_amount),
        status=domain.WithdrawalStatus(orm_withdrawal.status),
        description=orm_withdrawal.description,
        notes=orm_withdrawal.notes,
        reject_reason=orm_withdrawal.reject_reason,
        processed_by=orm_withdrawal.processed_by,
        processed_at=orm_withdrawal.processed_at,
        completed_at=orm_withdrawal.completed_at,
        created_at=orm_withdrawal.created_at,
        updated_at=orm_withdrawal.updated_at,
    )
