"""FastAPI request layer exposing the seat ledger over HTTP."""
from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import LedgerConfig
from .ledger import SeatLedger
from .models import FailureReason, LedgerResult, SeatSnapshot

logger = logging.getLogger(__name__)

CLAIMANT_HEADER = "x-user-id"


def _seat_view(seat: SeatSnapshot) -> Dict[str, Any]:
    return {
        "status": seat.status.value,
        "holder": seat.holder,
        "heldAt": seat.held_at.isoformat() if seat.held_at else None,
    }


async def _claimant(request: Request) -> Optional[str]:
    """Claimant id from the header, then a JSON body ``user``, then ``?user=``."""

    header = request.headers.get(CLAIMANT_HEADER)
    if header:
        return header
    raw = await request.body()
    if raw:
        try:
            body = json.loads(raw)
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("user"):
            return str(body["user"])
    return request.query_params.get("user") or None


def _respond(result: LedgerResult, failure_status: int = 400) -> JSONResponse:
    status_code = 200 if result.ok else failure_status
    return JSONResponse(status_code=status_code, content={"message": result.message})


def create_app(
    ledger: Optional[SeatLedger] = None, config: Optional[LedgerConfig] = None
) -> FastAPI:
    """Return an application serving ``ledger``.

    When no ledger is given one is built from ``config`` (or the environment)
    on startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = app.state.ledger is None
        if owned:
            settings = config or LedgerConfig.from_env()
            app.state.ledger = SeatLedger.from_config(settings)
            logger.info(
                "Seat ledger ready (seats=%d, hold_ttl_ms=%d)",
                settings.seat_count,
                settings.hold_ttl_ms,
            )
        yield
        if owned:
            app.state.ledger.close()
            app.state.ledger = None
            logger.info("Seat ledger closed")

    app = FastAPI(title="Seat Ledger", description="Seat hold and booking arbitration", lifespan=lifespan)
    app.state.ledger = ledger

    def current_ledger() -> SeatLedger:
        return app.state.ledger

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/seats")
    async def list_seats() -> Dict[str, Dict[str, Any]]:
        return {str(seat.id): _seat_view(seat) for seat in current_ledger().list_seats()}

    @app.get("/seats/{seat_id}")
    async def get_seat(seat_id: str) -> JSONResponse:
        seat = current_ledger().get_seat(seat_id)
        if seat is None:
            return JSONResponse(status_code=404, content={"message": f"Seat {seat_id} does not exist."})
        return JSONResponse(content={"id": seat.id, **_seat_view(seat)})

    @app.post("/lock/{seat_id}")
    async def lock(seat_id: str, request: Request) -> JSONResponse:
        return _respond(current_ledger().hold(seat_id, await _claimant(request)))

    @app.post("/confirm/{seat_id}")
    async def confirm(seat_id: str, request: Request) -> JSONResponse:
        return _respond(current_ledger().confirm(seat_id, await _claimant(request)))

    @app.post("/unlock/{seat_id}")
    async def unlock(seat_id: str) -> JSONResponse:
        result = current_ledger().release(seat_id)
        if result.reason is FailureReason.UNKNOWN_SEAT:
            return _respond(result, failure_status=404)
        return _respond(result)

    return app


__all__ = ["create_app", "CLAIMANT_HEADER"]
