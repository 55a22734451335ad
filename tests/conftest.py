"""Shared pytest fixtures for shiftledger tests."""

import tempfile
import os
from datetime import datetime, timedelta
from decimal import Decimal
import pytest

from shiftledger.config import LedgerSettings
from shiftledger.database.factories import create_sqlite_database
from shiftledger.domain.agent import AgentService
from shiftledger.domain.attendance import AttendanceService
from shiftledger.domain.balance import BalanceReconciler, BalanceService
from shiftledger.domain.earnings import EarningsService
from shiftledger.domain.withdrawal import WithdrawalService


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path, settings=LedgerSettings(sqlite_timeout=10.0))
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def settings():
    """Default ledger settings, independent of the environment."""
    return LedgerSettings()


@pytest.fixture
def clock():
    """Clock frozen at 09:00 on a Friday in mid-March."""
    return FrozenClock(datetime(2024, 3, 15, 9, 0, 0))


@pytest.fixture
def agent_service(temp_db, settings, clock):
    """Create an AgentService with a temporary database and frozen clock."""
    return AgentService(temp_db, settings=settings, clock=clock)


@pytest.fixture
def reconciler(temp_db):
    """Create a BalanceReconciler with a temporary database."""
    return BalanceReconciler(temp_db)


@pytest.fixture
def balance_service(temp_db, clock, reconciler):
    """Create a BalanceService with a temporary database and frozen clock."""
    return BalanceService(temp_db, clock=clock, reconciler=reconciler)


@pytest.fixture
def earnings_service(temp_db, clock, reconciler):
    """Create an EarningsService with a temporary database and frozen clock."""
    return EarningsService(temp_db, clock=clock, reconciler=reconciler)


@pytest.fixture
def attendance_service(temp_db, clock, earnings_service):
    """Create an AttendanceService with a temporary database and frozen clock."""
    return AttendanceService(temp_db, clock=clock, earnings=earnings_service)


@pytest.fixture
def withdrawal_service(temp_db, settings, clock, reconciler):
    """Create a WithdrawalService with a temporary database and frozen clock."""
    return WithdrawalService(temp_db, settings=settings, clock=clock, reconciler=reconciler)


@pytest.fixture
def sample_agent(agent_service):
    """Create a sample agent at the default rate of 20.00/h."""
    agent_id = agent_service.create_agent(username="alice")
    return agent_service.get_agent(agent_id)


@pytest.fixture
def funded_agent(agent_service):
    """Create an agent with 200.00 available."""
    agent_id = agent_service.create_agent(username="bob", initial_balance=Decimal("200.00"))
    return agent_service.get_agent(agent_id)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
