"""Integration tests for the control surface (anchor, collision, mode, telemetry)."""
import pytest

from helmwatch.config import settings
from helmwatch.models.vessel import OwnVessel, Position, Target

VESSEL = Position(43.0, 5.0)


@pytest.fixture
def with_position(services):
    services.telemetry.set_own_vessel(OwnVessel(position=VESSEL, sog=0.0, cog=90.0))
    return services


@pytest.fixture
def at_antimeridian(services):
    services.telemetry.set_own_vessel(OwnVessel(position=Position(0.0, 179.9999), sog=0.0, cog=90.0))
    return services


class TestAnchorControl:
    def test_status_defaults_to_raised(self, api_client):
        resp = api_client.get("/api/v1/navigation/anchor/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["state"] == "raised"
        assert data["max_radius"] == 30.0
        assert data["dragging"] is False
        assert data["position"] is None

    def test_drop_without_position_is_422(self, api_client):
        resp = api_client.post("/api/v1/navigation/anchor/drop")
        assert resp.status_code == 422
        assert "position" in resp.json()["detail"]

    def test_drop_records_position_and_sets_mode(self, with_position, api_client):
        resp = api_client.post("/api/v1/navigation/anchor/drop")
        assert resp.status_code == 200
        data = resp.json()
        assert data["position"] == {"latitude": 43.0, "longitude": 5.0}
        assert data["anchor"]["state"] == "dropping"
        assert api_client.get("/api/v1/mode").json() == {"mode": "anchored"}

    def test_drop_twice_is_409(self, with_position, api_client):
        api_client.post("/api/v1/navigation/anchor/drop")
        resp = api_client.post("/api/v1/navigation/anchor/drop")
        assert resp.status_code == 409

    @pytest.mark.parametrize("body", [{"value": 0}, {"value": -3}, {"value": "far"}, {}])
    def test_radius_rejects_invalid(self, api_client, body):
        resp = api_client.post("/api/v1/navigation/anchor/radius", json=body)
        assert resp.status_code == 422

    def test_radius_updates_record(self, api_client):
        resp = api_client.post("/api/v1/navigation/anchor/radius", json={"value": 40})
        assert resp.status_code == 200
        assert resp.json()["max_radius"] == 40.0
        assert api_client.get("/api/v1/navigation/anchor").json()["max_radius"] == 40.0

    def test_reposition_transitions_to_dropped(self, with_position, api_client):
        api_client.post("/api/v1/navigation/anchor/drop")
        resp = api_client.post(
            "/api/v1/navigation/anchor/reposition", json={"rode_length": 50, "anchor_depth": 10}
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["anchor"]["state"] == "dropped"
        assert data["anchor"]["rode_length"] == 50.0
        assert data["position"]["longitude"] > VESSEL.longitude

    def test_reposition_across_antimeridian(self, at_antimeridian, api_client):
        api_client.post("/api/v1/navigation/anchor/drop")
        resp = api_client.post(
            "/api/v1/navigation/anchor/reposition", json={"rode_length": 50, "anchor_depth": 5}
        )
        assert resp.status_code == 200
        longitude = resp.json()["position"]["longitude"]
        assert -180.0 <= longitude < 0

        status = api_client.get("/api/v1/navigation/anchor/status")
        assert status.status_code == 200
        assert status.json()["state"] == "dropped"
        assert api_client.get("/api/v1/navigation/anchor").status_code == 200

    def test_reposition_while_raised_is_409(self, with_position, api_client):
        resp = api_client.post(
            "/api/v1/navigation/anchor/reposition", json={"rode_length": 50, "anchor_depth": 10}
        )
        assert resp.status_code == 409

    def test_reposition_rejects_missing_depth(self, api_client):
        resp = api_client.post("/api/v1/navigation/anchor/reposition", json={"rode_length": 50})
        assert resp.status_code == 422

    def test_raise_returns_to_raised_and_sailing(self, with_position, api_client):
        api_client.post("/api/v1/navigation/anchor/drop")
        resp = api_client.post("/api/v1/navigation/anchor/raise")
        assert resp.status_code == 200
        data = resp.json()
        assert data["state"] == "raised"
        assert data["position"] is None
        assert data["raised_at"] is not None
        assert api_client.get("/api/v1/mode").json() == {"mode": "sailing"}
        assert api_client.get("/api/v1/notifications").json() == []

    def test_raise_while_raised_is_409(self, api_client):
        assert api_client.post("/api/v1/navigation/anchor/raise").status_code == 409

    def test_snapshot_includes_current_radius(self, with_position, services, api_client):
        api_client.post("/api/v1/navigation/anchor/drop")
        services.anchor_watch.process_position(Position(43.0003, 5.0))
        data = api_client.get("/api/v1/navigation/anchor").json()
        assert data["state"] == "dropping"
        assert data["current_radius"] == pytest.approx(33.36, abs=0.01)
        status = api_client.get("/api/v1/navigation/anchor/status").json()
        assert status["dragging"] is True
        keys = [n["key"] for n in api_client.get("/api/v1/notifications").json()]
        assert keys == ["anchor.drag"]


class TestModeAndTelemetry:
    def test_invalid_mode_is_422(self, api_client):
        resp = api_client.post("/api/v1/mode", json={"mode": "flying"})
        assert resp.status_code == 422
        assert "Invalid mode" in resp.json()["detail"]

    def test_leaving_anchored_mode_emits_advisory(self, with_position, api_client):
        api_client.post("/api/v1/navigation/anchor/drop")
        resp = api_client.post("/api/v1/mode", json={"mode": "motoring"})
        assert resp.status_code == 200
        notifications = api_client.get("/api/v1/notifications").json()
        assert [n["key"] for n in notifications] == ["anchor.modeChange"]
        assert notifications[0]["state"] == "warn"

        api_client.post("/api/v1/mode", json={"mode": "anchored"})
        assert api_client.get("/api/v1/notifications").json() == []

    def test_telemetry_delta_updates_own_vessel(self, api_client, services):
        delta = {
            "context": "vessels.self",
            "updates": [{"values": [
                {"path": "navigation.position", "value": {"latitude": 43.0, "longitude": 5.0}},
                {"path": "navigation.speedOverGround", "value": 2.0},
            ]}],
        }
        resp = api_client.post("/api/v1/telemetry/delta", json=delta)
        assert resp.status_code == 200
        assert resp.json() == {"applied": 2}
        assert services.telemetry.get_own_vessel().position == VESSEL


class TestCollision:
    def test_scan_reports_danger_target(self, api_client, services):
        services.telemetry.set_own_vessel(OwnVessel(position=Position(0.0, 0.0), sog=10.0, cog=0.0))
        services.telemetry.set_targets([
            Target(target_id="244123456", name="ALPHA", position=Position(0.05, 0.0), sog=10.0, cog=180.0),
        ])
        resp = api_client.post("/api/v1/collision/scan")
        assert resp.status_code == 200
        data = resp.json()
        assert data["danger_count"] == 1
        assert data["assessments"][0]["risk"] == "danger"
        assert data["assessments"][0]["situation"] == "head_on"
        assert data["alerts"][0]["severity"] == "alarm"
        assert data["summary"].startswith("Collision danger: ALPHA")

        targets = api_client.get("/api/v1/collision/targets").json()
        assert targets["total_in_range"] == 1
        keys = [n["key"] for n in api_client.get("/api/v1/notifications").json()]
        assert keys == ["collision.danger"]

    def test_targets_before_any_scan_is_empty(self, api_client):
        data = api_client.get("/api/v1/collision/targets").json()
        assert data["assessments"] == []
        assert data["total_in_range"] == 0


class TestHealthAndAuth:
    def test_health_reports_components(self, api_client):
        data = api_client.get("/health").json()
        assert data["status"] == "ok"
        assert data["version"] == "0.1.0"
        assert data["components"]["anchor_watch"]["state"] == "raised"
        assert data["components"]["collision_monitor"]["running"] is True
        assert data["components"]["mode"] == "sailing"

    def test_api_key_required_when_configured(self, api_client, monkeypatch):
        monkeypatch.setattr(settings, "HELMWATCH_API_KEY", "secret")
        assert api_client.get("/api/v1/mode").status_code == 401
        assert api_client.get("/api/v1/mode", headers={"X-API-Key": "secret"}).status_code == 200
        assert api_client.get("/health").status_code == 200
