# backend/tests/test_server.py

"""
API tests for the converter HTTP surface

Tests cover:
- /api/health
- GET /api/converter/state
- POST /api/converter/events (valid, invalid token, internal event rejected)
- GET /api/converter/units
"""

import pytest
import sys
from pathlib import Path

from fastapi.testclient import TestClient

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import server
from conversion_state_engine import initial_state
from converter_session import ConverterSession
from unit_catalog import ConversionUnit, ConverterMode, build_unit_table


@pytest.fixture
def client(monkeypatch):
    """Test client with a fresh session holding EUR/USD rates"""
    rates = build_unit_table([
        ConversionUnit(code="EUR", display_name="Euro", factor=0.85),
        ConversionUnit(code="USD", display_name="US Dollar", factor=1.0),
    ])
    monkeypatch.setattr(server, "session", ConverterSession(initial_state(units={ConverterMode.CURRENCY: rates})))
    # Not used as a context manager, so the startup rates fetch does not run
    return TestClient(server.app)


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["ok"] is True


class TestConverterState:
    """Test state egress"""

    def test_initial_state(self, client):
        response = client.get("/api/converter/state")
        body = response.json()

        assert response.status_code == 200
        assert body["mode"] == "CURRENCY"
        assert body["active_side"] == "FROM"
        assert body["from_code"] == "EUR"
        assert body["to_display"] == "0.00"
        assert body["last_error"] is None
        assert body["units"]["CURRENCY"]["EUR"]["factor"] == 0.85


class TestConverterEvents:
    """Test event ingress"""

    def test_digit_events(self, client):
        """Test 5 then 0 EUR -> 58.82 USD"""
        client.post("/api/converter/events", json={"type": "digit", "token": "5"})
        response = client.post("/api/converter/events", json={"type": "digit", "token": "0"})
        body = response.json()

        assert response.status_code == 200
        assert body["from_display"] == "50"
        assert body["to_display"] == "58.82"

    def test_mode_and_pick_events(self, client):
        """Test LENGTH mode, pick MILE, type 1 -> 1.61 KM"""
        client.post("/api/converter/events", json={"type": "select_mode", "mode": "LENGTH"})
        client.post("/api/converter/events", json={"type": "pick_unit", "code": "MILE"})
        response = client.post("/api/converter/events", json={"type": "digit", "token": "1"})
        body = response.json()

        assert body["from_code"] == "MILE"
        assert body["to_code"] == "KM"
        assert body["to_display"] == "1.61"

    def test_side_swap_and_dismiss(self, client):
        client.post("/api/converter/events", json={"type": "select_side", "side": "TO"})
        response = client.post("/api/converter/events", json={"type": "swap_sides"})
        body = response.json()

        assert body["active_side"] == "TO"
        assert body["from_code"] == "USD"
        assert body["to_code"] == "EUR"

        response = client.post("/api/converter/events", json={"type": "dismiss_error"})
        assert response.json()["last_error"] is None

    def test_invalid_token(self, client):
        """Test non-keypad tokens are rejected before reaching the engine"""
        response = client.post("/api/converter/events", json={"type": "digit", "token": "x"})

        assert response.status_code == 422
        assert server.session.state.from_display == "0.00"

    def test_reference_data_event_not_accepted(self, client):
        """Test reference data cannot be pushed over HTTP"""
        response = client.post("/api/converter/events", json={
            "type": "reference_data_updated",
            "mode": "CURRENCY",
            "outcome": {"status": "SUCCESS", "units": []}
        })

        assert response.status_code == 422
        assert len(server.session.state.units[ConverterMode.CURRENCY]) == 2


class TestConverterUnits:
    """Test picker population"""

    def test_units_for_active_mode(self, client):
        response = client.get("/api/converter/units")

        assert [unit["code"] for unit in response.json()] == ["EUR", "USD"]

    def test_units_for_mode(self, client):
        response = client.get("/api/converter/units", params={"mode": "VOLUME"})
        units = response.json()

        assert len(units) == 7
        assert units[0] == {"code": "LITER", "display_name": "Liter", "factor": 1.0}

    def test_unknown_mode(self, client):
        response = client.get("/api/converter/units", params={"mode": "MASS"})

        assert response.status_code == 422
