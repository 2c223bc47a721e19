"""
==============================================================================
API Integration Tests
==============================================================================

Tests for REST API endpoints.

==============================================================================
"""

from fastapi.testclient import TestClient

from app.services.station_service import ScanStationManager


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client: TestClient):
        """Test health check returns status."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["camera"] == "disabled"
        assert data["components"]["audit"] == "disabled"

    def test_readiness_probe(self, client: TestClient):
        """Test readiness probe."""
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_liveness_probe(self, client: TestClient):
        """Test liveness probe."""
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True


class TestModeEndpoints:
    """Tests for the mode catalogue."""

    def test_list_modes(self, client: TestClient):
        response = client.get("/api/v1/modes")
        assert response.status_code == 200
        modes = [entry["mode"] for entry in response.json()["modes"]]
        assert modes == ["lookup", "inventory", "picking", "receiving"]


class TestStationEndpoints:
    """Tests for scan station endpoints."""

    def test_get_unknown_station(self, client: TestClient, manager: ScanStationManager):
        """Reading a station never creates it."""
        for station_id in ("dock-1", "dock-2", "dock-3"):
            response = client.get(f"/api/v1/stations/{station_id}")
            assert response.status_code == 404
            assert response.json()["error"]["code"] == "STATION_NOT_FOUND"

        assert len(manager) == 0

    def test_get_station(self, client: TestClient):
        client.put("/api/v1/stations/dock-1/mode", json={"mode": "lookup"})
        response = client.get("/api/v1/stations/dock-1")
        assert response.status_code == 200
        station = response.json()["station"]
        assert station["station_id"] == "dock-1"
        assert station["mode"] == "lookup"
        assert station["profile"] == "surface"
        assert station["history"] == []

    def test_manual_scan(self, client: TestClient):
        """Test manual submission is trimmed and recorded."""
        response = client.post(
            "/api/v1/stations/dock-1/manual",
            json={"text": "  WDG-001 "}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["scan"]["code"] == "WDG-001"
        assert data["scan"]["source"] == "manual"
        assert data["station"]["history"][0]["code"] == "WDG-001"

    def test_manual_scan_empty(self, client: TestClient):
        """Test blank manual submission is rejected."""
        response = client.post("/api/v1/stations/dock-1/manual", json={"text": "   "})
        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "EMPTY_INPUT"
        assert data["error"]["message"] == "Please enter a valid barcode."

    def test_history_keeps_last_ten(self, client: TestClient):
        for i in range(15):
            client.post("/api/v1/stations/dock-1/manual", json={"text": f"CODE-{i}"})

        history = client.get("/api/v1/stations/dock-1").json()["station"]["history"]
        assert [entry["code"] for entry in history] == [f"CODE-{i}" for i in range(14, 4, -1)]

    def test_set_mode(self, client: TestClient):
        response = client.put("/api/v1/stations/dock-1/mode", json={"mode": "Picking"})
        assert response.status_code == 200
        assert response.json()["station"]["mode"] == "picking"

        scan = client.post("/api/v1/stations/dock-1/manual", json={"text": "SKU-9"}).json()
        assert scan["scan"]["mode"] == "picking"

    def test_set_invalid_mode(self, client: TestClient):
        response = client.put("/api/v1/stations/dock-1/mode", json={"mode": "shipping"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_MODE"

    def test_open_and_close_surface(self, client: TestClient):
        response = client.post("/api/v1/stations/dock-1/surface/open")
        assert response.status_code == 200
        assert response.json()["station"]["surface_open"] is True

        response = client.post(
            "/api/v1/stations/dock-1/surface/open",
            json={"request_camera": True}
        )
        station = response.json()["station"]
        assert station["camera_active"] is False
        assert station["camera_permission_denied"] is True

        response = client.post("/api/v1/stations/dock-1/surface/close")
        assert response.status_code == 200
        assert response.json()["station"]["surface_open"] is False

    def test_close_surface_unknown_station(self, client: TestClient):
        response = client.post("/api/v1/stations/nowhere/surface/close")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "STATION_NOT_FOUND"

    def test_invalid_station_id(self, client: TestClient):
        response = client.post("/api/v1/stations/-bad/manual", json={"text": "X"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_STATION_ID"

    def test_delete_station(self, client: TestClient):
        client.put("/api/v1/stations/dock-1/mode", json={"mode": "lookup"})

        response = client.delete("/api/v1/stations/dock-1")
        assert response.status_code == 200
        assert response.json()["success"] is True

        response = client.delete("/api/v1/stations/dock-1")
        assert response.status_code == 404
