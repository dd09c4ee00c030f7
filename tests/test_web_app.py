import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from fastapi.testclient import TestClient

from seat_ledger import web
from seat_ledger.config import LedgerConfig
from seat_ledger.ledger import SeatLedger
from seat_ledger.scheduler import ManualScheduler


def _make_client(seats: int = 10):
    scheduler = ManualScheduler(start=1_700_000_000.0)
    ledger = SeatLedger(seats, 60.0, scheduler=scheduler, clock=scheduler.now)
    return TestClient(web.create_app(ledger)), ledger, scheduler


def test_list_seats_returns_every_seat_in_order():
    client, _, _ = _make_client(seats=3)

    response = client.get("/seats")

    assert response.status_code == 200
    body = response.json()
    assert list(body) == ["1", "2", "3"]
    assert body["1"] == {"status": "available", "holder": None, "heldAt": None}


def test_lock_then_confirm_with_header_claimant():
    client, _, _ = _make_client()

    locked = client.post("/lock/1", headers={"x-user-id": "alice"})
    assert locked.status_code == 200
    assert locked.json()["message"] == "Seat 1 locked successfully. Confirm within 60 seconds."

    seat = client.get("/seats").json()["1"]
    assert seat["status"] == "held"
    assert seat["holder"] == "alice"
    assert seat["heldAt"].startswith("2023-11-14T22:13:20")

    confirmed = client.post("/confirm/1", headers={"x-user-id": "alice"})
    assert confirmed.status_code == 200
    assert client.get("/seats").json()["1"]["status"] == "booked"


def test_claimant_from_body_and_query():
    client, ledger, _ = _make_client()

    client.post("/lock/2", json={"user": "bob"})
    client.post("/lock/3", params={"user": "carol"})

    assert ledger.get_seat(2).holder == "bob"
    assert ledger.get_seat(3).holder == "carol"


def test_header_takes_precedence_over_body():
    client, ledger, _ = _make_client()

    client.post("/lock/2", headers={"x-user-id": "alice"}, json={"user": "bob"})

    assert ledger.get_seat(2).holder == "alice"


def test_malformed_body_is_ignored():
    client, ledger, _ = _make_client()

    response = client.post(
        "/lock/4", content=b"not json", headers={"content-type": "application/json"}
    )

    assert response.status_code == 200
    assert ledger.get_seat(4).holder == "anonymous"


def test_wrong_claimant_cannot_confirm():
    client, _, _ = _make_client()
    client.post("/lock/2", headers={"x-user-id": "alice"})

    response = client.post("/confirm/2", headers={"x-user-id": "bob"})

    assert response.status_code == 400
    assert "another user" in response.json()["message"]


def test_lock_on_held_and_unknown_seats_fails():
    client, _, _ = _make_client()
    client.post("/lock/1", headers={"x-user-id": "alice"})

    held = client.post("/lock/1", headers={"x-user-id": "bob"})
    unknown = client.post("/lock/9999")

    assert held.status_code == 400
    assert held.json()["message"] == "Seat 1 is currently locked by alice."
    assert unknown.status_code == 400
    assert unknown.json()["message"] == "Seat 9999 does not exist."


def test_unlock_status_codes():
    client, _, _ = _make_client()

    assert client.post("/unlock/9999").status_code == 404
    assert client.post("/unlock/1").status_code == 400

    client.post("/lock/1")
    response = client.post("/unlock/1")
    assert response.status_code == 200
    assert response.json()["message"] == "Seat 1 unlocked and returned to available."


def test_expired_hold_is_visible_over_http():
    client, _, scheduler = _make_client()
    client.post("/lock/1", headers={"x-user-id": "alice"})

    scheduler.advance(61)

    assert client.get("/seats").json()["1"] == {"status": "available", "holder": None, "heldAt": None}
    assert client.post("/confirm/1", headers={"x-user-id": "alice"}).status_code == 400


def test_single_seat_lookup():
    client, _, _ = _make_client()

    assert client.get("/seats/5").json() == {"id": 5, "status": "available", "holder": None, "heldAt": None}
    assert client.get("/seats/abc").status_code == 404


def test_lifespan_builds_and_closes_ledger_from_config():
    app = web.create_app(config=LedgerConfig(seat_count=2, hold_ttl_ms=1000))

    with TestClient(app) as client:
        assert client.get("/health").json() == {"status": "ok"}
        assert list(client.get("/seats").json()) == ["1", "2"]
        assert client.post("/lock/1").status_code == 200

    assert app.state.ledger is None


def test_header_claimant_named_anonymous_cannot_be_confirmed_by_others():
    client, _, _ = _make_client()
    client.post("/lock/2", headers={"x-user-id": "anonymous"})

    response = client.post("/confirm/2", headers={"x-user-id": "mallory"})

    assert response.status_code == 400
    assert client.get("/seats").json()["2"]["status"] == "held"


def test_package_level_create_app_serves_ledger():
    import seat_ledger

    ledger = SeatLedger(2, 60.0, scheduler=ManualScheduler())
    client = TestClient(seat_ledger.create_app(ledger))

    assert list(client.get("/seats").json()) == ["1", "2"]
