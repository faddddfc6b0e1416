"""Tests for the control API.

Covers:
  - health and pile status
  - submit / cancel / stop through the driver inbox
  - interrupt, close and open, incl. refusals
  - tariff price lookup and quotes
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from pile_simulator.api.server import create_app
from pile_simulator.protocol.adapter import ProtocolAdapter
from pile_simulator.protocol.transport import PileDriver


@pytest.fixture
def make_client(make_pile, tariff):
    def _make(**pile_overrides) -> TestClient:
        driver = PileDriver(ProtocolAdapter(make_pile(**pile_overrides)))
        return TestClient(create_app(driver, tariff))

    return _make


# ═══════════════════════════════════════════════════════════════════════════
# Pile endpoints
# ═══════════════════════════════════════════════════════════════════════════

class TestPileEndpoints:
    """Session operations against a live driver."""

    def test_health(self, make_client):
        with make_client() as client:
            assert client.get("/health").json() == {"status": "ok"}

    def test_idle_status(self, make_client):
        with make_client() as client:
            data = client.get("/pile").json()
        assert data["pile_id"] == "pile-1"
        assert data["closed"] is False
        assert data["capacity"] == 2
        assert data["active"] is None
        assert data["waiting"] == []

    def test_submit(self, make_client):
        with make_client() as client:
            r = client.post("/pile/requests", json={"id": 1, "requested_energy_kwh": 10})
            assert r.status_code == 201
            assert r.json()["status"] == "charging"
            assert client.get("/pile").json()["active"]["id"] == 1

    def test_submit_beyond_capacity(self, make_client):
        with make_client() as client:
            assert client.post("/pile/requests", json={"id": 1}).status_code == 201
            assert client.post("/pile/requests", json={"id": 2}).json()["status"] == "queued"
            r = client.post("/pile/requests", json={"id": 3})
            assert r.status_code == 409
            assert r.json()["detail"] == {"id": 3, "reason": "queue_full"}
            assert [s["id"] for s in client.get("/pile").json()["waiting"]] == [2]

    def test_submit_invalid_body(self, make_client):
        with make_client() as client:
            assert client.post("/pile/requests", json={"id": -1}).status_code == 422
            assert client.post("/pile/requests", json={"id": 1, "requested_energy_kwh": 1e12}).status_code == 422

    def test_cancel_waiting(self, make_client):
        with make_client() as client:
            client.post("/pile/requests", json={"id": 1})
            client.post("/pile/requests", json={"id": 2})
            r = client.delete("/pile/requests/2")
            assert r.status_code == 200
            assert r.json()["status"] == "cancelled"

    def test_stop_charging(self, make_client):
        with make_client() as client:
            client.post("/pile/requests", json={"id": 1})
            assert client.delete("/pile/requests/1").json()["status"] == "completed"
            assert client.get("/pile").json()["active"] is None

    def test_cancel_unknown(self, make_client):
        with make_client() as client:
            r = client.delete("/pile/requests/42")
            assert r.status_code == 404
            assert r.json()["detail"] == "no session with id 42"

    def test_interrupt_disabled(self, make_client):
        with make_client() as client:
            client.post("/pile/requests", json={"id": 1})
            assert client.post("/pile/interrupt").status_code == 409

    def test_interrupt(self, make_client):
        with make_client(allow_interruption=True) as client:
            assert client.post("/pile/interrupt").status_code == 404
            client.post("/pile/requests", json={"id": 1})
            r = client.post("/pile/interrupt")
            assert r.status_code == 200
            assert r.json()["status"] == "interrupted"

    def test_close_and_open(self, make_client):
        with make_client() as client:
            client.post("/pile/requests", json={"id": 1})
            client.post("/pile/requests", json={"id": 2})
            r = client.post("/pile/close")
            assert [s["status"] for s in r.json()] == ["completed", "cancelled"]
            assert client.post("/pile/close").status_code == 409
            assert client.post("/pile/requests", json={"id": 3}).json()["detail"]["reason"] == "pile_closed"
            assert client.post("/pile/open").json() == {"closed": False}
            assert client.post("/pile/open").status_code == 409
            assert client.post("/pile/requests", json={"id": 3}).status_code == 201


# ═══════════════════════════════════════════════════════════════════════════
# Tariff endpoints
# ═══════════════════════════════════════════════════════════════════════════

class TestTariffEndpoints:
    def test_price_now(self, make_client):
        with make_client() as client:
            data = client.get("/tariff/price").json()
        assert data["price"] == 0.4   # simulated clock starts at 06:30
        assert data["service_fee"] == 0.8

    def test_price_at_local_time(self, make_client):
        with make_client() as client:
            data = client.get("/tariff/price", params={"at": "2025-06-01T08:00:00"}).json()
        assert data["price"] == 0.7

    def test_price_at_offset_time(self, make_client):
        with make_client() as client:
            data = client.get("/tariff/price", params={"at": "2025-06-01T02:00:00+00:00"}).json()
        assert data["price"] == 1.0   # 10:00 in Shanghai

    def test_quote_reference_charge(self, make_client):
        with make_client() as client:
            r = client.get("/tariff/quote", params={
                "minutes": 720, "power_kw": 1, "start": "2025-06-01T08:00:00",
            })
        data = r.json()
        assert data["energy_kwh"] == 12.0
        assert data["total_price"] == pytest.approx(20.1)

    def test_quote_defaults_to_rated_power(self, make_client):
        with make_client() as client:
            data = client.get("/tariff/quote", params={"minutes": 60, "start": "2025-06-01T06:30:00"}).json()
        assert data["power_kw"] == 30.0
        assert data["total_price"] == pytest.approx(40.5)

    def test_quote_requires_positive_duration(self, make_client):
        with make_client() as client:
            assert client.get("/tariff/quote", params={"minutes": 0}).status_code == 422
