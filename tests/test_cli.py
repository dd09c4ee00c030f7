from seat_ledger import cli
from seat_ledger.ledger import SeatLedger
from seat_ledger.models import SeatStatus
from seat_ledger.scheduler import ManualScheduler


def test_simulation_never_double_books():
    ledger = SeatLedger(3, 60.0, scheduler=ManualScheduler())

    outcomes = cli.run_simulation(ledger, 30, confirm_ratio=1.0, seed=7)

    booked = [seat for seat in ledger.list_seats() if seat.status is SeatStatus.BOOKED]
    assert sum(outcomes.values()) == 30
    assert outcomes["booked"] == len(booked)
    assert outcomes["booked"] <= 3


def test_simulate_prints_seat_table(capsys, monkeypatch):
    monkeypatch.delenv("SEAT_LEDGER_SEAT_COUNT", raising=False)

    exit_code = cli.main(["simulate", "--seats", "4", "--claimants", "8", "--seed", "1"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Simulated 8 claimants against 4 seats" in out
    assert "| Seat" in out
    assert "Outcome" in out


def test_seat_table_keeps_ids_left_aligned():
    ledger = SeatLedger(2, 60.0, scheduler=ManualScheduler())

    table = cli._render_table(ledger.list_seats())

    assert table.splitlines()[0].startswith("| Seat ")
    assert "| 1 " in table


def test_invalid_configuration_exits_with_error(capsys):
    exit_code = cli.main(["simulate", "--hold-ttl-ms", "0"])

    assert exit_code == 1
    assert "hold TTL must be positive" in capsys.readouterr().err
