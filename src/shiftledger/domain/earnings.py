"""Earnings calculation and resync service.

Amounts are Decimal throughout and every computed amount is rounded to
cents with ROUND_HALF_UP. Work duration is rounded to hundredths of an hour
before it is multiplied by the hourly rate.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Optional

from shiftledger.database.base import Database
from shiftledger.domain.balance import BalanceChange, BalanceReconciler
from shiftledger.domain.entities import AgentStatus, DailyEarningsRecord
from shiftledger.domain.errors import AgentNotFoundError, ValidationError, agent_not_found

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
_MICROSECONDS_PER_HOUR = Decimal(3600 * 1_000_000)


def round_money(value: Decimal | int | str) -> Decimal:
    """Round to two decimals, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def work_hours_between(start: datetime, end: datetime) -> Decimal:
    """Hours from start to end rounded to hundredths, never negative."""
    microseconds = (end - start) // timedelta(microseconds=1)
    if microseconds <= 0:
        return ZERO
    return round_money(Decimal(microseconds) / _MICROSECONDS_PER_HOUR)


def calculate_earnings(work_hours: Decimal, hourly_rate: Decimal) -> Decimal:
    """Earnings for a duration at a rate, rounded to cents."""
    return round_money(work_hours * hourly_rate)


def estimate_from_minutes(minutes: int, hourly_rate: Decimal) -> Decimal:
    """Earnings estimate for a whole-minute duration."""
    if minutes <= 0:
        return ZERO
    return round_money(Decimal(minutes) / Decimal(60) * hourly_rate)


def month_start(day: date) -> date:
    """First day of the month containing ``day``."""
    return day.replace(day=1)


@dataclass(frozen=True)
class EarningsBreakdown:
    """Components of one day's earnings."""

    base: Decimal
    commission: Decimal = ZERO
    bonus: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return round_money(self.base + self.commission + self.bonus)


def incremental_breakdown(work_hours: Decimal, hourly_rate: Decimal) -> EarningsBreakdown:
    """Breakdown for a completed shift.

    Commission and bonus are always zero for now.
    """
    return EarningsBreakdown(base=calculate_earnings(work_hours, hourly_rate))


@dataclass(frozen=True)
class ShiftEarnings:
    """Outcome of booking one shift into the ledger."""

    record: DailyEarningsRecord
    delta: Decimal
    balance: BalanceChange


@dataclass(frozen=True)
class ResyncResult:
    """Outcome of recomputing one agent's totals from daily records."""

    agent_id: int
    username: str
    delta: Decimal
    total_earnings: Decimal
    current_month_earnings: Decimal
    work_days: int
    balance_after: Decimal


@dataclass(frozen=True)
class ResyncFailure:
    """An agent whose resync was rolled back."""

    agent_id: int
    username: str
    error: str


@dataclass
class BatchResyncResult:
    """Outcome of resyncing every active agent."""

    results: list[ResyncResult] = field(default_factory=list)
    failures: list[ResyncFailure] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.results)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def total_count(self) -> int:
        return self.success_count + self.failure_count


class EarningsService:
    """Service for booking shift earnings and recomputing totals."""

    def __init__(
        self,
        db: Database,
        clock: Optional[Callable[[], datetime]] = None,
        reconciler: Optional[BalanceReconciler] = None,
    ):
        """Initialize earnings service.

        Args:
            db: Database instance
            clock: Returns the current local time (defaults to datetime.now)
            reconciler: Balance engine (defaults to one on the same database)
        """
        self.db = db
        self.clock = clock or datetime.now
        self.reconciler = reconciler or BalanceReconciler(db)

    def record_shift(
        self,
        agent_id: int,
        day: date,
        clock_in_time: datetime,
        clock_out_time: datetime,
        work_hours: Decimal,
        hourly_rate: Decimal,
    ) -> ShiftEarnings:
        """Upsert the day's snapshot and credit the difference to the balance.

        Must be called inside the clock-out transaction. The credited amount
        is the new day total minus whatever the day's snapshot held before,
        so running totals keep matching the sum of the snapshots.
        """
        breakdown = incremental_breakdown(work_hours, hourly_rate)
        with self.db.transaction():
            previous = self.db.get_daily_earnings(agent_id, day)
            previous_total = previous.total_earnings if previous is not None else ZERO

            record = self.db.upsert_daily_earnings(
                agent_id=agent_id,
                day=day,
                work_hours=work_hours,
                hourly_rate=hourly_rate,
                base_earnings=breakdown.base,
                commission_earnings=breakdown.commission,
                bonus_earnings=breakdown.bonus,
                total_earnings=breakdown.total,
                clock_in_time=clock_in_time,
                clock_out_time=clock_out_time,
            )

            delta = breakdown.total - previous_total
            change = self.reconciler.apply_earnings(
                agent_id,
                delta,
                f"Shift earnings: {day.isoformat()} worked {work_hours} h",
                now=clock_out_time,
            )
            return ShiftEarnings(record=record, delta=delta, balance=change)

    def resync_agent(self, agent_id: int) -> ResyncResult:
        """Recompute lifetime and monthly totals from the daily snapshots.

        The difference between the recomputed total and the stored total is
        applied to the available balance. Running it again without new data
        applies nothing.

        Raises:
            AgentNotFoundError: If the agent does not exist
            InsufficientBalanceError: If the correction would make the balance negative
        """
        now = self.clock()
        with self.db.transaction():
            agent = self.db.get_agent(agent_id, for_update=True)
            if agent is None:
                raise AgentNotFoundError(agent_not_found(agent_id))

            totals = self.db.sum_daily_earnings(agent_id, month_start(now.date()))
            delta = totals.total - agent.total_earnings
            change = self.reconciler.apply_earnings(
                agent_id,
                delta,
                f"Earnings resync: {totals.work_days} work day(s)",
                now=now,
                month_total=totals.month_total,
            )

        if delta != ZERO:
            logger.info("Resynced agent %s (%s): delta %s", agent.username, agent_id, delta)
        return ResyncResult(
            agent_id=agent_id,
            username=agent.username,
            delta=delta,
            total_earnings=totals.total,
            current_month_earnings=totals.month_total,
            work_days=totals.work_days,
            balance_after=change.balance_after,
        )

    def resync_all_agents(self) -> BatchResyncResult:
        """Resync every active agent, one transaction per agent."""
        batch = BatchResyncResult()
        for agent in self.db.list_agents(status=AgentStatus.ACTIVE):
            try:
                batch.results.append(self.resync_agent(agent.id))
            except Exception as e:
                logger.exception("Resync failed for agent %s (%s)", agent.username, agent.id)
                batch.failures.append(ResyncFailure(agent_id=agent.id, username=agent.username, error=str(e)))
        logger.info(
            "Batch resync finished: %d succeeded, %d failed",
            batch.success_count,
            batch.failure_count,
        )
        return batch

    def list_daily_earnings(
        self,
        agent_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[DailyEarningsRecord]:
        """List an agent's daily snapshots, newest first.

        Raises:
            AgentNotFoundError: If the agent does not exist
            ValidationError: If start_date is after end_date
        """
        if start_date is not None and end_date is not None and start_date > end_date:
            raise ValidationError("Start date must not be after end date")
        if self.db.get_agent(agent_id) is None:
            raise AgentNotFoundError(agent_not_found(agent_id))
        return self.db.list_daily_earnings(agent_id, start_date=start_date, end_date=end_date)
