"""Agent domain service."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from shiftledger.config import LedgerSettings
from shiftledger.database.base import Database
from shiftledger.domain.attendance import current_view
from shiftledger.domain.entities import AgentAccount, AgentStatus, AttendanceStatus, WithdrawalStatus
from shiftledger.domain.errors import (
    AgentNotFoundError,
    ConflictError,
    ValidationError,
    agent_not_found,
)
from shiftledger.domain.earnings import ZERO, round_money


@dataclass(frozen=True)
class AgentStats:
    """Headcount and money totals across all agents."""

    total_agents: int
    active_agents: int
    working_today: int
    total_earnings: Decimal
    current_month_earnings: Decimal
    pending_withdrawals: Decimal


class AgentService:
    """Service for managing agent accounts.

    Reads return accounts as of the service clock: a stale day or month is
    reported as reset even before the next write persists the reset.
    """

    def __init__(
        self,
        db: Database,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize agent service.

        Args:
            db: Database instance
            settings: Ledger settings (defaults from environment)
            clock: Returns the current local time
        """
        self.db = db
        self.settings = settings or LedgerSettings.from_env()
        self.clock = clock or datetime.now

    def _view(self, agent: Optional[AgentAccount]) -> Optional[AgentAccount]:
        if agent is None:
            return None
        return current_view(agent, self.clock())

    def create_agent(
        self,
        username: str,
        hourly_rate: Optional[Decimal] = None,
        initial_balance: Decimal = Decimal("0.00"),
    ) -> int:
        """Create a new agent.

        Args:
            username: Unique login name
            hourly_rate: Pay per hour (defaults to the configured rate)
            initial_balance: Opening available balance

        Returns:
            Agent ID

        Raises:
            ValidationError: If username is blank or an amount is negative
            ConflictError: If the username is taken
        """
        username = username.strip()
        if not username:
            raise ValidationError("Username must not be empty")

        rate = self.settings.default_hourly_rate if hourly_rate is None else hourly_rate
        if rate < 0:
            raise ValidationError("Hourly rate must not be negative")
        if initial_balance < 0:
            raise ValidationError("Initial balance must not be negative")

        with self.db.transaction():
            if self.db.get_agent_by_username(username) is not None:
                raise ConflictError(f"Agent with username '{username}' already exists")
            return self.db.create_agent(
                username=username,
                hourly_rate=round_money(rate),
                available_balance=round_money(initial_balance),
            )

    def get_agent(self, agent_id: int) -> Optional[AgentAccount]:
        """Get agent by ID.

        Returns:
            Agent entity or None if not found
        """
        return self._view(self.db.get_agent(agent_id))

    def get_agent_by_username(self, username: str) -> Optional[AgentAccount]:
        """Get agent by username."""
        return self._view(self.db.get_agent_by_username(username))

    def list_agents(self, status: Optional[AgentStatus] = None) -> list[AgentAccount]:
        """List agents, optionally only those with the given status."""
        now = self.clock()
        return [current_view(agent, now) for agent in self.db.list_agents(status=status)]

    def set_hourly_rate(self, agent_id: int, hourly_rate: Decimal) -> AgentAccount:
        """Change an agent's hourly rate.

        Applies to shifts clocked out after the change.

        Raises:
            ValidationError: If the rate is negative
            AgentNotFoundError: If the agent does not exist
        """
        if hourly_rate < 0:
            raise ValidationError("Hourly rate must not be negative")
        with self.db.transaction():
            if self.db.get_agent(agent_id, for_update=True) is None:
                raise AgentNotFoundError(agent_not_found(agent_id))
            return self._view(self.db.update_agent(agent_id, hourly_rate=round_money(hourly_rate)))

    def set_status(self, agent_id: int, status: AgentStatus) -> AgentAccount:
        """Activate or deactivate an agent.

        Raises:
            AgentNotFoundError: If the agent does not exist
        """
        with self.db.transaction():
            if self.db.get_agent(agent_id, for_update=True) is None:
                raise AgentNotFoundError(agent_not_found(agent_id))
            return self._view(self.db.update_agent(agent_id, status=AgentStatus(status)))

    def set_hourly_rate_bulk(self, hourly_rate: Decimal, agent_ids: Optional[list[int]] = None) -> int:
        """Change the hourly rate of several agents at once.

        Args:
            hourly_rate: New pay per hour
            agent_ids: Agents to change (all agents when None)

        Returns:
            Number of agents updated

        Raises:
            ValidationError: If the rate is negative or no agents are given
            AgentNotFoundError: If any of the given agents does not exist
        """
        if hourly_rate < 0:
            raise ValidationError("Hourly rate must not be negative")
        if agent_ids is not None:
            agent_ids = list(dict.fromkeys(agent_ids))
            if not agent_ids:
                raise ValidationError("No agents given")

        with self.db.transaction():
            if agent_ids is not None:
                for agent_id in agent_ids:
                    if self.db.get_agent(agent_id, for_update=True) is None:
                        raise AgentNotFoundError(agent_not_found(agent_id))
            return self.db.update_hourly_rates(round_money(hourly_rate), agent_ids)

    def get_stats(self) -> AgentStats:
        """Summarize headcount, earnings and outstanding withdrawals.

        Working agents are those clocked in today. Month earnings only count
        agents whose counter belongs to the current month.
        """
        now = self.clock()
        with self.db.transaction():
            agents = [current_view(agent, now) for agent in self.db.list_agents()]
            pending = self.db.sum_withdrawals(WithdrawalStatus.PENDING)

        return AgentStats(
            total_agents=len(agents),
            active_agents=sum(1 for a in agents if a.status is AgentStatus.ACTIVE),
            working_today=sum(1 for a in agents if a.today_status is AttendanceStatus.CLOCKED_IN),
            total_earnings=sum((a.total_earnings for a in agents), ZERO),
            current_month_earnings=sum((a.current_month_earnings for a in agents), ZERO),
            pending_withdrawals=pending,
        )
