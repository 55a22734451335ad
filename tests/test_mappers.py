"""Tests for database mappers."""

from datetime import datetime, date
from decimal import Decimal

from shiftledger.database.models import (
    Agent as ORMAgent,
    DailyEarnings as ORMDailyEarnings,
    HistoryLog as ORMHistoryLog,
    Withdrawal as ORMWithdrawal,
)
from shiftledger.database.mappers import (
    agent_to_domain,
    daily_earnings_to_domain,
    history_to_domain,
    withdrawal_to_domain,
)
from shiftledger.domain.entities import (
    AgentAccount,
    AgentStatus,
    AttendanceStatus,
    HistoryAction,
    WithdrawalStatus,
)


class TestAgentMapper:
    """Tests for Agent mapper."""

    def test_agent_to_domain(self):
        """Numeric columns come back quantized to cents."""
        now = datetime(2024, 3, 15, 9, 0)
        orm_agent = ORMAgent(
            id=1,
            username="alice",
            status=AgentStatus.ACTIVE,
            hourly_rate=20,
            available_balance=Decimal("12.5"),
            total_earnings=Decimal("12.5"),
            current_month_earnings=None,
            earnings_month=date(2024, 3, 1),
            total_withdrawals=0,
            pending_withdrawals=0,
            total_withdrawn=0,
            today_status="clocked_in",
            today_clock_in_time=now,
            today_work_hours=0,
            today_total_earnings=0,
            created_at=now,
            updated_at=now,
        )

        agent = agent_to_domain(orm_agent)

        assert isinstance(agent, AgentAccount)
        assert agent.hourly_rate == Decimal("20.00")
        assert str(agent.available_balance) == "12.50"
        assert agent.current_month_earnings == Decimal("0.00")
        assert agent.today_status is AttendanceStatus.CLOCKED_IN
        assert agent.today_clock_out_time is None


class TestDailyEarningsMapper:
    """Tests for DailyEarnings mapper."""

    def test_daily_earnings_to_domain(self):
        now = datetime(2024, 3, 15, 17, 0)
        record = daily_earnings_to_domain(
            ORMDailyEarnings(
                id=3,
                agent_id=1,
                date=date(2024, 3, 15),
                work_hours=Decimal("8"),
                hourly_rate=Decimal("20"),
                base_earnings=Decimal("160"),
                commission_earnings=Decimal("0"),
                bonus_earnings=Decimal("0"),
                total_earnings=Decimal("160"),
                clock_in_time=datetime(2024, 3, 15, 9, 0),
                clock_out_time=now,
                created_at=now,
                updated_at=now,
            )
        )

        assert record.work_hours == Decimal("8.00")
        assert record.total_earnings == Decimal("160.00")
        assert record.clock_out_time == now


class TestHistoryMapper:
    """Tests for HistoryLog mapper."""

    def test_optional_amounts_stay_none(self):
        entry = history_to_domain(
            ORMHistoryLog(
                id=7,
                agent_id=1,
                action_type=HistoryAction.CLOCK_IN,
                action_date=date(2024, 3, 15),
                action_time=datetime(2024, 3, 15, 9, 0),
                hourly_rate=Decimal("20"),
            ),
            agent_username="alice",
        )

        assert entry.action_type is HistoryAction.CLOCK_IN
        assert entry.hourly_rate == Decimal("20.00")
        assert entry.work_hours is None
        assert entry.balance_after is None
        assert entry.agent_username == "alice"


class TestWithdrawalMapper:
    """Tests for Withdrawal mapper."""

    def test_withdrawal_to_domain(self):
        now = datetime(2024, 3, 15, 9, 0)
        w = withdrawal_to_domain(
            ORMWithdrawal(
                withdrawal_id="WD1710493200000ABCD",
                agent_id=1,
                amount=Decimal("50"),
                platform_fee=Decimal("0"),
                final_amount=Decimal("50"),
                status="approved",
                processed_by=2,
                processed_at=now,
                created_at=now,
                updated_at=now,
            )
        )

        assert w.status is WithdrawalStatus.APPROVED
        assert w.amount == Decimal("50.00")
        assert w.reject_reason is None
        assert w.completed_at is None
