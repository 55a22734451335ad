"""Shared domain error messages and error types."""

from decimal import Decimal


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Operation conflicts with the current state of an entity."""


class AgentNotFoundError(NotFoundError):
    """No agent with the given ID."""


class WithdrawalNotFoundError(NotFoundError):
    """No withdrawal request with the given ID."""


class HistoryEntryNotFoundError(NotFoundError):
    """No history log entry with the given ID."""


class AlreadyClockedInError(ConflictError):
    """Agent is already clocked in today."""


class AlreadyClockedOutError(ConflictError):
    """Agent already finished today's shift."""


class NotClockedInError(ConflictError):
    """Clock-out attempted without an open clock-in."""


class InsufficientBalanceError(ConflictError):
    """Available balance does not cover the requested change."""


class DuplicateRequestError(ConflictError):
    """Same withdrawal was submitted again within the duplicate window."""


class InvalidTransitionError(ConflictError):
    """State machine does not allow the requested transition."""


class StoreUnavailableError(RuntimeError):
    """The datastore failed mid-transaction; the operation was rolled back.

    Callers may retry the whole operation.
    """

    retryable = True


def agent_not_found(agent_id: int) -> str:
    """Return message for missing agent."""
    return f"Agent {agent_id} not found"


def withdrawal_not_found(withdrawal_id: str) -> str:
    """Return message for missing withdrawal request."""
    return f"Withdrawal '{withdrawal_id}' not found"


def history_entry_not_found(entry_id: int) -> str:
    """Return message for missing history entry."""
    return f"History entry {entry_id} not found"


def insufficient_balance(available: Decimal, requested: Decimal) -> str:
    """Return message when balance cannot cover an amount."""
    return f"Insufficient balance: available {available:.2f}, requested {requested:.2f}"


def invalid_transition(kind: str, current: str, target: str) -> str:
    """Return message for an illegal state change."""
    return f"Cannot move {kind} from '{current}' to '{target}'"
