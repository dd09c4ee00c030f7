"""Seat ledger package for arbitrating seat holds and bookings."""
from typing import Any

from .cli import main as cli_main
from .config import ConfigurationError, LedgerConfig
from .ledger import SeatLedger
from .models import (
    ANONYMOUS_CLAIMANT,
    FailureReason,
    LedgerResult,
    SeatSnapshot,
    SeatStatus,
)
from .scheduler import ManualScheduler, TimerScheduler


def create_app(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "ANONYMOUS_CLAIMANT",
    "ConfigurationError",
    "FailureReason",
    "LedgerConfig",
    "LedgerResult",
    "ManualScheduler",
    "SeatLedger",
    "SeatSnapshot",
    "SeatStatus",
    "TimerScheduler",
    "cli_main",
    "create_app",
]
