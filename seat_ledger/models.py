"""Seat records and the value objects returned by the seat ledger."""
from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

ANONYMOUS_CLAIMANT = "anonymous"


class SeatStatus(str, enum.Enum):
    AVAILABLE = "available"
    HELD = "held"
    BOOKED = "booked"


class FailureReason(str, enum.Enum):
    """Why a ledger operation was rejected."""

    UNKNOWN_SEAT = "unknown_seat"
    NOT_AVAILABLE = "not_available"
    NOT_HELD = "not_held"
    CLAIMANT_MISMATCH = "claimant_mismatch"
    LEDGER_CLOSED = "ledger_closed"


@dataclass(frozen=True)
class SeatSnapshot:
    """Read-only view of a seat at one instant."""

    id: int
    status: SeatStatus
    holder: Optional[str] = None
    held_at: Optional[datetime] = None

    def as_row(self) -> list[str]:
        return [
            str(self.id),
            self.status.value,
            self.holder or "-",
            self.held_at.isoformat(timespec="seconds") if self.held_at else "-",
        ]


@dataclass
class Seat:
    """Mutable seat record owned by the ledger.

    ``holder``, ``held_at``, ``expiry_handle``, ``hold_token`` and ``anonymous``
    are set together when the seat is held and cleared together when the hold ends.
    Every read or write must happen while ``lock`` is held.
    """

    id: int
    status: SeatStatus = SeatStatus.AVAILABLE
    holder: Optional[str] = None
    held_at: Optional[datetime] = None
    expiry_handle: Any = None
    hold_token: Optional[int] = None
    anonymous: bool = False
    generation: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def next_generation(self) -> int:
        self.generation += 1
        return self.generation

    def start_hold(
        self, claimant: Optional[str], now: datetime, token: int, handle: Any
    ) -> None:
        self.status = SeatStatus.HELD
        self.anonymous = not claimant
        self.holder = claimant or ANONYMOUS_CLAIMANT
        self.held_at = now
        self.hold_token = token
        self.expiry_handle = handle

    def end_hold(self, status: SeatStatus) -> Any:
        """Leave the held state and return the expiry handle that was pending."""

        handle = self.expiry_handle
        self.status = status
        self.holder = None
        self.held_at = None
        self.hold_token = None
        self.anonymous = False
        self.expiry_handle = None
        return handle

    def snapshot(self) -> SeatSnapshot:
        return SeatSnapshot(id=self.id, status=self.status, holder=self.holder, held_at=self.held_at)


@dataclass(frozen=True)
class LedgerResult:
    ok: bool
    message: str
    seat: Optional[SeatSnapshot] = None
    reason: Optional[FailureReason] = None

    @classmethod
    def success(cls, message: str, seat: SeatSnapshot) -> "LedgerResult":
        return cls(ok=True, message=message, seat=seat)

    @classmethod
    def failure(
        cls, reason: FailureReason, message: str, seat: Optional[SeatSnapshot] = None
    ) -> "LedgerResult":
        return cls(ok=False, message=message, seat=seat, reason=reason)
