"""Command line interface for serving and exercising the seat ledger."""
from __future__ import annotations

import argparse
import logging
import random
import sys
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional, Sequence

from tabulate import tabulate

from .config import DEFAULT_HOST, ConfigurationError, LedgerConfig
from .ledger import SeatLedger
from .models import SeatSnapshot

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _render_table(seats: Iterable[SeatSnapshot]) -> str:
    rows = [seat.as_row() for seat in seats]
    return tabulate(
        rows,
        headers=["Seat", "Status", "Holder", "Held at"],
        tablefmt="github",
        disable_numparse=True,
    )


def _build_config(args: argparse.Namespace) -> LedgerConfig:
    base = LedgerConfig.from_env()
    return LedgerConfig(
        seat_count=base.seat_count if args.seats is None else args.seats,
        hold_ttl_ms=base.hold_ttl_ms if args.hold_ttl_ms is None else args.hold_ttl_ms,
        host=base.host if getattr(args, "host", None) is None else args.host,
        port=base.port if getattr(args, "port", None) is None else args.port,
    )


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seat hold and booking arbitration service.")
    parser.add_argument("--verbose", action="store_true", help="Log rejected operations too.")
    commands = parser.add_subparsers(dest="command", required=True)

    def add_pool_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--seats", type=int, default=None, help="Number of seats in the pool (default: 10).")
        sub.add_argument(
            "--hold-ttl-ms",
            type=int,
            default=None,
            help="Milliseconds a hold lasts before it expires (default: 60000).",
        )

    serve = commands.add_parser("serve", help="Run the HTTP API.")
    add_pool_options(serve)
    serve.add_argument("--host", default=None, help=f"Bind address (default: {DEFAULT_HOST}).")
    serve.add_argument("--port", type=int, default=None, help="Listening port (default: 3000).")

    simulate = commands.add_parser(
        "simulate", help="Race concurrent claimants against an in-process ledger."
    )
    add_pool_options(simulate)
    simulate.add_argument("--claimants", type=int, default=20, help="Number of claimant threads.")
    simulate.add_argument(
        "--confirm-ratio",
        type=float,
        default=0.5,
        help="Share of successful holders that confirm instead of releasing.",
    )
    simulate.add_argument("--seed", type=int, default=42, help="Random seed for seat choice.")

    return parser.parse_args(list(argv))


def run_simulation(
    ledger: SeatLedger, claimants: int, *, confirm_ratio: float = 0.5, seed: int = 42
) -> Counter:
    """Let ``claimants`` threads each try to hold a random seat, then confirm or release it."""

    def attempt(index: int) -> str:
        rng = random.Random(seed + index)
        claimant = f"user-{index}"
        seat_id = rng.randint(1, ledger.seat_count)
        held = ledger.hold(seat_id, claimant)
        if not held.ok:
            return held.reason.value
        if rng.random() < confirm_ratio:
            return "booked" if ledger.confirm(seat_id, claimant).ok else "expired"
        return "released" if ledger.release(seat_id).ok else "expired"

    with ThreadPoolExecutor(max_workers=max(claimants, 1)) as pool:
        return Counter(pool.map(attempt, range(claimants)))


def _serve(config: LedgerConfig) -> int:  # pragma: no cover - blocks until interrupted
    import uvicorn

    from .web import create_app

    uvicorn.run(create_app(config=config), host=config.host, port=config.port, log_level="info")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)
    try:
        config = _build_config(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.command == "serve":
        return _serve(config)

    if args.claimants < 0 or not 0.0 <= args.confirm_ratio <= 1.0:
        print("Error: --claimants must be >= 0 and --confirm-ratio within [0, 1]", file=sys.stderr)
        return 1
    ledger = SeatLedger.from_config(config)
    try:
        outcomes = run_simulation(
            ledger, args.claimants, confirm_ratio=args.confirm_ratio, seed=args.seed
        )
        seats = ledger.list_seats()
    finally:
        ledger.close()

    print(f"Simulated {args.claimants} claimants against {config.seat_count} seats")
    print(_render_table(seats))
    print()
    print(tabulate(sorted(outcomes.items()), headers=["Outcome", "Count"], tablefmt="github"))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
