"""Runtime settings for shiftledger."""

import os
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional


@dataclass(frozen=True)
class LedgerSettings:
    """Tunable business constants.

    Attributes:
        default_hourly_rate: Rate assigned to new agents when none is given
        minimum_withdrawal: Smallest amount an agent may request
        duplicate_window: How far back a pending request of the same amount
            counts as a duplicate submission
        platform_fee_rate: Fraction of each withdrawal kept as a fee
        sqlite_timeout: Seconds a SQLite connection waits on a locked database
    """

    default_hourly_rate: Decimal = Decimal("20.00")
    minimum_withdrawal: Decimal = Decimal("1.00")
    duplicate_window: timedelta = timedelta(minutes=5)
    platform_fee_rate: Decimal = Decimal("0")
    sqlite_timeout: float = 30.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerSettings":
        """Build settings from SHIFTLEDGER_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable holds an unparseable value
        """
        if environ is None:
            environ = os.environ

        defaults = cls()
        return cls(
            default_hourly_rate=_decimal_var(
                environ, "SHIFTLEDGER_DEFAULT_HOURLY_RATE", defaults.default_hourly_rate
            ),
            minimum_withdrawal=_decimal_var(
                environ, "SHIFTLEDGER_MIN_WITHDRAWAL", defaults.minimum_withdrawal
            ),
            duplicate_window=timedelta(
                minutes=int(
                    environ.get(
                        "SHIFTLEDGER_DUPLICATE_WINDOW_MINUTES",
                        int(defaults.duplicate_window.total_seconds() // 60),
                    )
                )
            ),
            platform_fee_rate=_decimal_var(
                environ, "SHIFTLEDGER_PLATFORM_FEE_RATE", defaults.platform_fee_rate
            ),
            sqlite_timeout=float(environ.get("SHIFTLEDGER_SQLITE_TIMEOUT", defaults.sqlite_timeout)),
        )


def _decimal_var(environ: Mapping[str, str], name: str, default: Decimal) -> Decimal:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        raise ValueError(f"{name} must be a decimal number, got '{raw}'")
