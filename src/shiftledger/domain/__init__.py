"""Domain layer for shiftledger.

Services are imported lazily so that the database layer can import
``shiftledger.domain.entities`` without pulling the services (which import
the database layer) in first.
"""

_SERVICES = {
    "AgentService": "shiftledger.domain.agent",
    "AttendanceService": "shiftledger.domain.attendance",
    "BalanceReconciler": "shiftledger.domain.balance",
    "BalanceService": "shiftledger.domain.balance",
    "EarningsService": "shiftledger.domain.earnings",
    "WithdrawalService": "shiftledger.domain.withdrawal",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
