"""Attendance domain service: the daily clock-in/clock-out state machine."""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Optional

from shiftledger.database.base import Database
from shiftledger.domain.earnings import (
    EarningsService,
    estimate_from_minutes,
    month_start,
    work_hours_between,
)
from shiftledger.domain.entities import (
    AgentAccount,
    AttendanceStatus,
    HistoryAction,
    HistoryLogEntry,
)
from shiftledger.domain.errors import (
    AgentNotFoundError,
    AlreadyClockedInError,
    AlreadyClockedOutError,
    HistoryEntryNotFoundError,
    InvalidTransitionError,
    NotClockedInError,
    ValidationError,
    agent_not_found,
    history_entry_not_found,
    invalid_transition,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Forward edges of the daily state machine. Every state may also be reset
# to NOT_CLOCKED (day rollover or operator reset).
ATTENDANCE_TRANSITIONS: dict[AttendanceStatus, frozenset[AttendanceStatus]] = {
    AttendanceStatus.NOT_CLOCKED: frozenset({AttendanceStatus.CLOCKED_IN}),
    AttendanceStatus.CLOCKED_IN: frozenset({AttendanceStatus.CLOCKED_OUT}),
    AttendanceStatus.CLOCKED_OUT: frozenset(),
}

CLEARED_TODAY_FIELDS: dict[str, Any] = {
    "today_status": AttendanceStatus.NOT_CLOCKED,
    "today_clock_in_time": None,
    "today_clock_out_time": None,
    "today_work_hours": ZERO,
    "today_total_earnings": ZERO,
}


def normalize_today(agent: AgentAccount, now: datetime) -> Optional[dict[str, Any]]:
    """Return the column changes that reset a stale day, or None if today's state is current.

    State is stale when the agent is not NOT_CLOCKED but the stored clock-in
    time is missing or falls on another calendar date than ``now``.
    """
    if agent.today_status is AttendanceStatus.NOT_CLOCKED:
        return None
    clock_in = agent.today_clock_in_time
    if clock_in is not None and clock_in.date() == now.date():
        return None
    return dict(CLEARED_TODAY_FIELDS)


def normalize_month(agent: AgentAccount, now: datetime) -> Optional[dict[str, Any]]:
    """Return the column changes that restart a stale month counter, or None if it is current.

    The counter is stale when its last booking fell in an earlier calendar
    month than ``now``. Nothing has been earned this month in that case.
    """
    current = month_start(now.date())
    if agent.earnings_month is None or agent.earnings_month == current:
        return None
    return {"current_month_earnings": ZERO, "earnings_month": current}


def current_view(agent: AgentAccount, now: datetime) -> AgentAccount:
    """Project an account as of ``now`` with day and month rollover applied, without writing."""
    changes: dict[str, Any] = {}
    changes.update(normalize_today(agent, now) or {})
    changes.update(normalize_month(agent, now) or {})
    return replace(agent, **changes) if changes else agent


def _minutes_between(start: datetime, end: datetime) -> int:
    minutes = Decimal((end - start).total_seconds()) / Decimal(60)
    return max(int(minutes.quantize(Decimal(1), rounding=ROUND_HALF_UP)), 0)


@dataclass(frozen=True)
class ClockInResult:
    agent_id: int
    status: AttendanceStatus
    clock_in_time: datetime


@dataclass(frozen=True)
class ClockOutResult:
    agent_id: int
    clock_in_time: datetime
    clock_out_time: datetime
    work_hours: Decimal
    hourly_rate: Decimal
    earnings: Decimal
    new_balance: Decimal


@dataclass(frozen=True)
class TodayStatus:
    """Read projection of an agent's day."""

    agent_id: int
    username: str
    status: AttendanceStatus
    clock_in_time: Optional[datetime]
    clock_out_time: Optional[datetime]
    work_duration_minutes: int
    hourly_rate: Decimal
    earnings: Decimal

    @property
    def can_clock_in(self) -> bool:
        return self.status is AttendanceStatus.NOT_CLOCKED

    @property
    def can_clock_out(self) -> bool:
        return self.status is AttendanceStatus.CLOCKED_IN


@dataclass(frozen=True)
class AttendanceRecord:
    """One row of attendance history.

    ``entry_id`` is None for rows synthesized from an agent's live state.
    """

    entry_id: Optional[int]
    agent_id: int
    username: Optional[str]
    date: date
    status: AttendanceStatus
    clock_in_time: Optional[datetime]
    clock_out_time: Optional[datetime]
    work_hours: Decimal
    work_duration_minutes: int
    hourly_rate: Optional[Decimal]
    earnings: Decimal
    recorded_at: datetime


@dataclass(frozen=True)
class AttendancePage:
    records: list[AttendanceRecord]
    total: int


def _validate_paging(page: int, page_size: int) -> None:
    if page < 1:
        raise ValidationError("Page must be 1 or greater")
    if page_size < 1:
        raise ValidationError("Page size must be 1 or greater")


class AttendanceService:
    """Service for clocking agents in and out."""

    def __init__(
        self,
        db: Database,
        clock: Optional[Callable[[], datetime]] = None,
        earnings: Optional[EarningsService] = None,
    ):
        """Initialize attendance service.

        Args:
            db: Database instance
            clock: Returns the current local time (defaults to datetime.now)
            earnings: Earnings service used on clock-out (defaults to one
                sharing this database and clock)
        """
        self.db = db
        self.clock = clock or datetime.now
        self.earnings = earnings or EarningsService(db, clock=self.clock)

    def _load_today(self, agent_id: int, now: datetime, for_update: bool) -> AgentAccount:
        """Load an agent with today's state normalized (and persisted) for ``now``.

        Must run inside a transaction.
        """
        agent = self.db.get_agent(agent_id, for_update=for_update)
        if agent is None:
            raise AgentNotFoundError(agent_not_found(agent_id))

        changes = normalize_today(agent, now)
        if changes is None:
            return agent

        if not for_update:
            # Re-read under lock before writing
            agent = self.db.get_agent(agent_id, for_update=True)
            changes = normalize_today(agent, now)
            if changes is None:
                return agent

        logger.info(
            "Day rollover for agent %s: stale '%s' state from %s reset",
            agent_id,
            agent.today_status.value,
            agent.today_clock_in_time,
        )
        return self.db.update_agent(agent_id, **changes)

    def clock_in(self, agent_id: int) -> ClockInResult:
        """Clock an agent in for today.

        Args:
            agent_id: Agent ID

        Returns:
            ClockInResult with the recorded clock-in time

        Raises:
            AgentNotFoundError: If the agent does not exist
            AlreadyClockedInError: If the agent is already clocked in today
            AlreadyClockedOutError: If the agent already clocked out today
        """
        now = self.clock()
        with self.db.transaction():
            agent = self._load_today(agent_id, now, for_update=True)

            if agent.today_status is AttendanceStatus.CLOCKED_IN:
                raise AlreadyClockedInError(f"Agent {agent_id} is already clocked in today")
            elif agent.today_status is AttendanceStatus.CLOCKED_OUT:
                raise AlreadyClockedOutError(
                    f"Agent {agent_id} has already clocked out today and cannot clock in again"
                )
            elif AttendanceStatus.CLOCKED_IN not in ATTENDANCE_TRANSITIONS[agent.today_status]:
                raise InvalidTransitionError(
                    invalid_transition("attendance", agent.today_status.value, AttendanceStatus.CLOCKED_IN.value)
                )

            self.db.update_agent(
                agent_id,
                today_status=AttendanceStatus.CLOCKED_IN,
                today_clock_in_time=now,
                today_clock_out_time=None,
                today_work_hours=ZERO,
                today_total_earnings=ZERO,
            )
            self.db.append_history(
                agent_id,
                HistoryAction.CLOCK_IN,
                now,
                clock_in_time=now,
                hourly_rate=agent.hourly_rate,
            )

        logger.info("Agent %s (%s) clocked in at %s", agent.username, agent_id, now)
        return ClockInResult(agent_id=agent_id, status=AttendanceStatus.CLOCKED_IN, clock_in_time=now)

    def clock_out(self, agent_id: int) -> ClockOutResult:
        """Clock an agent out and book the shift's earnings.

        Earnings are computed, recorded and credited to the balance in the
        same transaction as the state change.

        Args:
            agent_id: Agent ID

        Returns:
            ClockOutResult with worked hours, earnings and the new balance

        Raises:
            AgentNotFoundError: If the agent does not exist
            NotClockedInError: If the agent has no open clock-in today
        """
        now = self.clock()
        with self.db.transaction():
            agent = self._load_today(agent_id, now, for_update=True)

            if agent.today_status is AttendanceStatus.CLOCKED_OUT:
                raise NotClockedInError(f"Agent {agent_id} has already clocked out today")
            elif agent.today_status is not AttendanceStatus.CLOCKED_IN or agent.today_clock_in_time is None:
                raise NotClockedInError(f"Agent {agent_id} has not clocked in today")

            clock_in_time = agent.today_clock_in_time
            work_hours = work_hours_between(clock_in_time, now)
            shift = self.earnings.record_shift(
                agent_id,
                now.date(),
                clock_in_time,
                now,
                work_hours,
                agent.hourly_rate,
            )
            earnings = shift.record.total_earnings

            self.db.update_agent(
                agent_id,
                today_status=AttendanceStatus.CLOCKED_OUT,
                today_clock_out_time=now,
                today_work_hours=work_hours,
                today_total_earnings=earnings,
            )
            self.db.append_history(
                agent_id,
                HistoryAction.CLOCK_OUT,
                now,
                clock_in_time=clock_in_time,
                clock_out_time=now,
                work_hours=work_hours,
                hourly_rate=agent.hourly_rate,
                total_earnings=earnings,
            )

        logger.info(
            "Agent %s (%s) clocked out: %s h, earned %s",
            agent.username,
            agent_id,
            work_hours,
            earnings,
        )
        return ClockOutResult(
            agent_id=agent_id,
            clock_in_time=clock_in_time,
            clock_out_time=now,
            work_hours=work_hours,
            hourly_rate=agent.hourly_rate,
            earnings=earnings,
            new_balance=shift.balance.balance_after,
        )

    def _today_status(self, agent: AgentAccount, now: datetime) -> TodayStatus:
        if agent.today_work_hours > ZERO:
            minutes = int((agent.today_work_hours * 60).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        elif agent.today_clock_in_time is not None and agent.today_clock_out_time is not None:
            minutes = _minutes_between(agent.today_clock_in_time, agent.today_clock_out_time)
        elif agent.today_clock_in_time is not None and agent.today_status is AttendanceStatus.CLOCKED_IN:
            minutes = _minutes_between(agent.today_clock_in_time, now)
        else:
            minutes = 0

        earnings = agent.today_total_earnings
        if earnings == ZERO and minutes > 0:
            # Live estimate while the shift is still open
            earnings = estimate_from_minutes(minutes, agent.hourly_rate)

        return TodayStatus(
            agent_id=agent.id,
            username=agent.username,
            status=agent.today_status,
            clock_in_time=agent.today_clock_in_time,
            clock_out_time=agent.today_clock_out_time,
            work_duration_minutes=minutes,
            hourly_rate=agent.hourly_rate,
            earnings=earnings,
        )

    def get_today_status(self, agent_id: int) -> TodayStatus:
        """Get today's attendance state, resetting a stale day first.

        Raises:
            AgentNotFoundError: If the agent does not exist
        """
        now = self.clock()
        with self.db.transaction():
            agent = self._load_today(agent_id, now, for_update=False)
            return self._today_status(agent, now)

    def list_today_overview(self, page: int = 1, page_size: int = 50) -> tuple[list[TodayStatus], int]:
        """Today's state of every agent, for the operator view.

        Returns:
            Tuple of (statuses on the requested page, total agent count)
        """
        _validate_paging(page, page_size)
        now = self.clock()
        with self.db.transaction():
            agents = self.db.list_agents()
            selected = agents[(page - 1) * page_size : page * page_size]
            statuses = [
                self._today_status(self._load_today(agent.id, now, for_update=False), now)
                for agent in selected
            ]
            return statuses, len(agents)

    def _record_from_history(self, entry: HistoryLogEntry) -> AttendanceRecord:
        if entry.action_type is HistoryAction.CLOCK_OUT:
            status = AttendanceStatus.CLOCKED_OUT
        elif entry.action_type is HistoryAction.CLOCK_IN:
            status = AttendanceStatus.CLOCKED_IN
        else:
            raise ValueError(f"Not an attendance entry: {entry.action_type.value}")

        work_hours = entry.work_hours or ZERO
        if work_hours > ZERO:
            minutes = int((work_hours * 60).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        elif entry.clock_in_time is not None and entry.clock_out_time is not None:
            minutes = _minutes_between(entry.clock_in_time, entry.clock_out_time)
        else:
            minutes = 0

        return AttendanceRecord(
            entry_id=entry.id,
            agent_id=entry.agent_id,
            username=entry.agent_username,
            date=entry.action_date,
            status=status,
            clock_in_time=entry.clock_in_time,
            clock_out_time=entry.clock_out_time,
            work_hours=work_hours,
            work_duration_minutes=minutes,
            hourly_rate=entry.hourly_rate,
            earnings=entry.total_earnings or ZERO,
            recorded_at=entry.action_time,
        )

    def _live_record(self, agent: AgentAccount, now: datetime) -> AttendanceRecord:
        today = self._today_status(agent, now)
        return AttendanceRecord(
            entry_id=None,
            agent_id=agent.id,
            username=agent.username,
            date=now.date(),
            status=agent.today_status,
            clock_in_time=agent.today_clock_in_time,
            clock_out_time=agent.today_clock_out_time,
            work_hours=agent.today_work_hours,
            work_duration_minutes=today.work_duration_minutes,
            hourly_rate=agent.hourly_rate,
            earnings=today.earnings,
            recorded_at=agent.today_clock_out_time or agent.today_clock_in_time or now,
        )

    def get_attendance_history(
        self,
        agent_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> AttendancePage:
        """Page through clock-in/clock-out history, newest first.

        When the range covers today, agents with an active day but no
        history row for today (e.g. the audit write was skipped) appear as
        a record built from their live state.

        Raises:
            ValidationError: If paging arguments or the date range are invalid
            AgentNotFoundError: If agent_id is given and unknown
        """
        _validate_paging(page, page_size)
        if start_date is not None and end_date is not None and start_date > end_date:
            raise ValidationError("Start date must not be after end date")

        now = self.clock()
        today = now.date()
        with self.db.transaction():
            if agent_id is not None and self.db.get_agent(agent_id) is None:
                raise AgentNotFoundError(agent_not_found(agent_id))

            entries = self.db.list_history(
                agent_id=agent_id,
                start_date=start_date,
                end_date=end_date,
                action_types=[HistoryAction.CLOCK_IN, HistoryAction.CLOCK_OUT],
            )
            records = [self._record_from_history(entry) for entry in entries]

            includes_today = (start_date is None or start_date <= today) and (
                end_date is None or end_date >= today
            )
            if includes_today:
                logged_today = {r.agent_id for r in records if r.date == today}
                candidates = (
                    [self.db.get_agent(agent_id)] if agent_id is not None else self.db.list_agents()
                )
                for candidate in candidates:
                    agent = self._load_today(candidate.id, now, for_update=False)
                    if agent.today_status is AttendanceStatus.NOT_CLOCKED or agent.id in logged_today:
                        continue
                    records.append(self._live_record(agent, now))

        records.sort(key=lambda r: (r.date, r.recorded_at), reverse=True)
        offset = (page - 1) * page_size
        return AttendancePage(records=records[offset : offset + page_size], total=len(records))

    def reset_today(self, agent_id: int) -> None:
        """Force an agent back to NOT_CLOCKED and drop today's records (operator only).

        The balance is left as is; a resync reconciles totals afterwards.

        Raises:
            AgentNotFoundError: If the agent does not exist
        """
        now = self.clock()
        today = now.date()
        with self.db.transaction():
            agent = self.db.get_agent(agent_id, for_update=True)
            if agent is None:
                raise AgentNotFoundError(agent_not_found(agent_id))
            self.db.update_agent(agent_id, **CLEARED_TODAY_FIELDS)
            removed_earnings = self.db.delete_daily_earnings(agent_id, today)
            removed_history = self.db.delete_history_for_day(agent_id, today)

        logger.info(
            "Reset today's attendance for agent %s: %d earnings row(s), %d history row(s) removed",
            agent_id,
            removed_earnings,
            removed_history,
        )

    def delete_history_entry(self, entry_id: int) -> None:
        """Delete a single history entry (operator correction).

        Raises:
            HistoryEntryNotFoundError: If no such entry exists
        """
        if not self.db.delete_history_entry(entry_id):
            raise HistoryEntryNotFoundError(history_entry_not_found(entry_id))
