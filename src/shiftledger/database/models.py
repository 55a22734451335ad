"""SQLAlchemy models for the shiftledger database."""

from datetime import datetime, UTC
from decimal import Decimal
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Enum,
    CheckConstraint,
    UniqueConstraint,
    Index,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

from shiftledger.domain.entities import (
    AgentStatus,
    AttendanceStatus,
    HistoryAction,
    WithdrawalStatus,
)

Base = declarative_base()

ZERO = Decimal("0.00")


def _enum_column(enum_cls, name: str) -> Enum:
    """Non-native enum column storing member values and rejecting unknown strings."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )


class Agent(Base):
    """Agent account model."""

    __tablename__ = "agents"

    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    status = Column(_enum_column(AgentStatus, "agent_status"), default=AgentStatus.ACTIVE, nullable=False)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    available_balance = Column(Numeric(12, 2), default=ZERO, nullable=False)
    total_earnings = Column(Numeric(12, 2), default=ZERO, nullable=False)
    current_month_earnings = Column(Numeric(12, 2), default=ZERO, nullable=False)
    earnings_month = Column(Date, nullable=True)
    total_withdrawals = Column(Numeric(12, 2), default=ZERO, nullable=False)
    pending_withdrawals = Column(Numeric(12, 2), default=ZERO, nullable=False)
    total_withdrawn = Column(Numeric(12, 2), default=ZERO, nullable=False)
    today_status = Column(
        _enum_column(AttendanceStatus, "attendance_status"),
        default=AttendanceStatus.NOT_CLOCKED,
        nullable=False,
    )
    today_clock_in_time = Column(DateTime, nullable=True)
    today_clock_out_time = Column(DateTime, nullable=True)
    today_work_hours = Column(Numeric(6, 2), default=ZERO, nullable=False)
    today_total_earnings = Column(Numeric(12, 2), default=ZERO, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("available_balance >= 0", name="ck_agents_balance_non_negative"),
    )

    # Relationships
    daily_earnings = relationship("DailyEarnings", back_populates="agent", cascade="all, delete-orphan")
    history = relationship("HistoryLog", back_populates="agent", cascade="all, delete-orphan")
    withdrawals = relationship("Withdrawal", back_populates="agent", cascade="all, delete-orphan")


class DailyEarnings(Base):
    """Per-day earnings snapshot model."""

    __tablename__ = "daily_earnings"

    id = Column(Integer, primary_key=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=False)
    date = Column(Date, nullable=False)
    work_hours = Column(Numeric(6, 2), default=ZERO, nullable=False)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    base_earnings = Column(Numeric(12, 2), default=ZERO, nullable=False)
    commission_earnings = Column(Numeric(12, 2), default=ZERO, nullable=False)
    bonus_earnings = Column(Numeric(12, 2), default=ZERO, nullable=False)
    total_earnings = Column(Numeric(12, 2), default=ZERO, nullable=False)
    clock_in_time = Column(DateTime, nullable=True)
    clock_out_time = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # At most one snapshot per agent per calendar date
    __table_args__ = (UniqueConstraint("agent_id", "date", name="uq_daily_earnings_agent_date"),)

    # Relationships
    agent = relationship("Agent", back_populates="daily_earnings")


class HistoryLog(Base):
    """Append-only audit log model."""

    __tablename__ = "history_log"

    id = Column(Integer, primary_key=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=False)
    action_type = Column(_enum_column(HistoryAction, "history_action"), nullable=False)
    action_date = Column(Date, nullable=False)
    action_time = Column(DateTime, nullable=False)
    clock_in_time = Column(DateTime, nullable=True)
    clock_out_time = Column(DateTime, nullable=True)
    work_hours = Column(Numeric(6, 2), nullable=True)
    hourly_rate = Column(Numeric(10, 2), nullable=True)
    total_earnings = Column(Numeric(12, 2), nullable=True)
    balance_before = Column(Numeric(12, 2), nullable=True)
    balance_after = Column(Numeric(12, 2), nullable=True)
    amount = Column(Numeric(12, 2), nullable=True)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (Index("ix_history_log_agent_date", "agent_id", "action_date"),)

    # Relationships
    agent = relationship("Agent", back_populates="history")


class Withdrawal(Base):
    """Withdrawal request model."""

    __tablename__ = "withdrawals"

    withdrawal_id = Column(String, primary_key=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    platform_fee = Column(Numeric(12, 2), default=ZERO, nullable=False)
    final_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(
        _enum_column(WithdrawalStatus, "withdrawal_status"),
        default=WithdrawalStatus.PENDING,
        nullable=False,
    )
    description = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    reject_reason = Column(String, nullable=True)
    processed_by = Column(Integer, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_withdrawals_amount_positive"),
        Index("ix_withdrawals_agent_status", "agent_id", "status"),
    )

    # Relationships
    agent = relationship("Agent", back_populates="withdrawals")


def create_ledger_engine(database_url: str, sqlite_timeout: float = 30.0) -> Engine:
    """Create an engine and make sure the schema exists.

    SQLite ignores SELECT ... FOR UPDATE, so SQLite connections open every
    transaction with BEGIN IMMEDIATE instead, which serializes writers.
    """
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"timeout": sqlite_timeout, "check_same_thread": False} if is_sqlite else {}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, connection_record):
            # Let SQLAlchemy emit BEGIN itself so SAVEPOINT works
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory bound to ``engine``."""
    return sessionmaker(bind=engine, expire_on_commit=False)
