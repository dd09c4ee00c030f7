"""In-memory seat ledger arbitrating holds, confirmations and expiries."""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple, Union

from .config import ConfigurationError, LedgerConfig
from .models import (
    ANONYMOUS_CLAIMANT,
    FailureReason,
    LedgerResult,
    Seat,
    SeatSnapshot,
    SeatStatus,
)
from .scheduler import ExpiryScheduler, TimerScheduler

logger = logging.getLogger(__name__)

SeatId = Union[int, str]


def _format_seconds(seconds: float) -> str:
    return f"{seconds:g}"


class SeatLedger:
    """Fixed pool of seats moving between available, held and booked.

    Every transition runs under the seat's own lock, including the expiry
    callback fired by the scheduler, so the net effect of concurrent calls on
    one seat is always that of some serial order. Seats never share a lock.
    Rejected operations are returned as failed :class:`LedgerResult` values.
    """

    def __init__(
        self,
        seat_count: int,
        hold_ttl: float,
        *,
        scheduler: Optional[ExpiryScheduler] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if seat_count < 1:
            raise ConfigurationError(f"seat count must be at least 1, got {seat_count}")
        if hold_ttl <= 0:
            raise ConfigurationError(f"hold TTL must be positive, got {hold_ttl} s")
        self.hold_ttl = hold_ttl
        self._scheduler = scheduler or TimerScheduler()
        self._clock = clock
        self._closed = threading.Event()
        self._seats: Dict[int, Seat] = {seat_id: Seat(id=seat_id) for seat_id in range(1, seat_count + 1)}

    @classmethod
    def from_config(
        cls, config: LedgerConfig, *, scheduler: Optional[ExpiryScheduler] = None
    ) -> "SeatLedger":
        return cls(config.seat_count, config.hold_ttl_seconds, scheduler=scheduler)

    @property
    def seat_count(self) -> int:
        return len(self._seats)

    def _lookup(self, seat_id: SeatId) -> Optional[Seat]:
        try:
            key = int(seat_id)
        except (TypeError, ValueError):
            return None
        return self._seats.get(key)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    @staticmethod
    def _unknown(seat_id: SeatId) -> LedgerResult:
        logger.debug("Rejected operation on unknown seat %s", seat_id)
        return LedgerResult.failure(FailureReason.UNKNOWN_SEAT, f"Seat {seat_id} does not exist.")

    def hold(self, seat_id: SeatId, claimant: Optional[str] = None) -> LedgerResult:
        """Hold an available seat for ``claimant`` until the TTL elapses."""

        seat = self._lookup(seat_id)
        if seat is None:
            return self._unknown(seat_id)
        holder = claimant or ANONYMOUS_CLAIMANT
        with seat.lock:
            if self._closed.is_set():
                logger.debug("Hold on seat %s by %s rejected: ledger closed", seat.id, holder)
                return LedgerResult.failure(
                    FailureReason.LEDGER_CLOSED, "Seat ledger is closed.", seat.snapshot()
                )
            if seat.status is SeatStatus.HELD:
                shown = "another user" if seat.anonymous else seat.holder
                logger.debug("Hold on seat %s by %s rejected: held by %s", seat.id, holder, seat.holder)
                return LedgerResult.failure(
                    FailureReason.NOT_AVAILABLE,
                    f"Seat {seat.id} is currently locked by {shown}.",
                    seat.snapshot(),
                )
            if seat.status is SeatStatus.BOOKED:
                logger.debug("Hold on seat %s by %s rejected: already booked", seat.id, holder)
                return LedgerResult.failure(
                    FailureReason.NOT_AVAILABLE,
                    f"Seat {seat.id} is already booked.",
                    seat.snapshot(),
                )

            token = seat.next_generation()
            handle = self._scheduler.schedule(
                self.hold_ttl, lambda: self._expire(seat.id, token)
            )
            seat.start_hold(claimant, self._now(), token, handle)
            snapshot = seat.snapshot()
        logger.info("Seat %s held by %s", seat.id, holder)
        return LedgerResult.success(
            f"Seat {seat.id} locked successfully. "
            f"Confirm within {_format_seconds(self.hold_ttl)} seconds.",
            snapshot,
        )

    def confirm(self, seat_id: SeatId, claimant: Optional[str] = None) -> LedgerResult:
        """Turn a live hold into a booking.

        Without a claimant any hold may be confirmed; with one it must match
        the holder unless the seat was held anonymously.
        """

        seat = self._lookup(seat_id)
        if seat is None:
            return self._unknown(seat_id)
        with seat.lock:
            if seat.status is not SeatStatus.HELD:
                logger.debug("Confirm on seat %s rejected: status %s", seat.id, seat.status.value)
                return LedgerResult.failure(
                    FailureReason.NOT_HELD,
                    f"Seat {seat.id} is not locked and cannot be booked.",
                    seat.snapshot(),
                )
            if claimant and not seat.anonymous and claimant != seat.holder:
                logger.debug(
                    "Confirm on seat %s by %s rejected: held by %s", seat.id, claimant, seat.holder
                )
                return LedgerResult.failure(
                    FailureReason.CLAIMANT_MISMATCH,
                    f"Seat {seat.id} is locked by another user and cannot be confirmed by you.",
                    seat.snapshot(),
                )
            holder = seat.holder
            self._scheduler.cancel(seat.end_hold(SeatStatus.BOOKED))
            snapshot = seat.snapshot()
        logger.info("Seat %s booked by %s", seat.id, claimant or holder)
        return LedgerResult.success(f"Seat {seat.id} booked successfully!", snapshot)

    def release(self, seat_id: SeatId) -> LedgerResult:
        """End a hold early and return the seat to the pool."""

        seat = self._lookup(seat_id)
        if seat is None:
            return self._unknown(seat_id)
        with seat.lock:
            if seat.status is not SeatStatus.HELD:
                logger.debug("Release on seat %s rejected: status %s", seat.id, seat.status.value)
                return LedgerResult.failure(
                    FailureReason.NOT_HELD, f"Seat {seat.id} is not locked.", seat.snapshot()
                )
            holder = seat.holder
            self._scheduler.cancel(seat.end_hold(SeatStatus.AVAILABLE))
            snapshot = seat.snapshot()
        logger.info("Seat %s released (was held by %s)", seat.id, holder)
        return LedgerResult.success(f"Seat {seat.id} unlocked and returned to available.", snapshot)

    def _expire(self, seat_id: int, token: int) -> None:
        seat = self._seats[seat_id]
        with seat.lock:
            # The hold this callback was scheduled for may already be gone.
            if seat.status is not SeatStatus.HELD or seat.hold_token != token:
                return
            holder = seat.holder
            seat.end_hold(SeatStatus.AVAILABLE)
        logger.info("Lock expired: seat %s returned to available (was held by %s)", seat_id, holder)

    def get_seat(self, seat_id: SeatId) -> Optional[SeatSnapshot]:
        seat = self._lookup(seat_id)
        if seat is None:
            return None
        with seat.lock:
            return seat.snapshot()

    def list_seats(self) -> Tuple[SeatSnapshot, ...]:
        """Snapshot every seat, ordered by id."""

        snapshots = []
        for seat_id in sorted(self._seats):
            seat = self._seats[seat_id]
            with seat.lock:
                snapshots.append(seat.snapshot())
        return tuple(snapshots)

    def close(self) -> None:
        """Cancel every pending expiry and stop the scheduler.

        Later holds are rejected with ``LEDGER_CLOSED``.
        """

        self._closed.set()
        for seat in self._seats.values():
            with seat.lock:
                if seat.expiry_handle is not None:
                    self._scheduler.cancel(seat.expiry_handle)
        self._scheduler.shutdown()


__all__ = ["SeatLedger", "SeatId"]
