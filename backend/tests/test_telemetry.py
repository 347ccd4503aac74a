"""Tests for Signal K normalization, the delta-fed TelemetryStore and YAML snapshots."""
import math

import pytest

from helmwatch.models.vessel import OwnVessel, Position
from helmwatch.modules.telemetry import (
    StaticTelemetryProvider,
    TelemetryStore,
    angle_to_degrees,
    extract_value,
    load_snapshot,
    own_vessel_from_signalk,
    parse_position,
    speed_to_knots,
    target_id_from_context,
    targets_from_signalk,
    unwrap_value,
)


class _FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now


def _delta(context, *values):
    return {"context": context, "updates": [{"values": [{"path": p, "value": v} for p, v in values]}]}


# --- normalization ---

def test_unwrap_value():
    assert unwrap_value({"value": 3}) == 3
    assert unwrap_value(3) == 3
    assert unwrap_value({"latitude": 1}) == {"latitude": 1}


def test_extract_value_walks_dotted_path():
    doc = {"navigation": {"speedOverGround": {"value": 2.0}}}
    assert extract_value(doc, "navigation.speedOverGround") == 2.0
    assert extract_value(doc, "navigation.courseOverGroundTrue") is None
    assert extract_value({"navigation": 5}, "navigation.position") is None


def test_parse_position_rejects_malformed():
    assert parse_position({"value": {"latitude": 43.0, "longitude": 5.0}}) == Position(43.0, 5.0)
    assert parse_position({"latitude": "43", "longitude": 5.0}) is None
    assert parse_position({"latitude": 95.0, "longitude": 5.0}) is None
    assert parse_position(None) is None


def test_unit_conversion():
    assert speed_to_knots(5.0) == pytest.approx(9.7192)
    assert speed_to_knots({"value": 1.0}) == pytest.approx(1.94384)
    assert speed_to_knots("fast") is None
    assert speed_to_knots(True) is None
    assert angle_to_degrees(math.pi) == pytest.approx(180.0)
    assert angle_to_degrees(-math.pi / 2) == pytest.approx(270.0)
    assert angle_to_degrees(float("nan")) is None


def test_target_id_from_context():
    assert target_id_from_context("vessels.urn:mrn:imo:mmsi:244123456") == "244123456"
    assert target_id_from_context("vessels.abc") == "abc"
    assert target_id_from_context("urn:mrn:imo:mmsi:1") == "1"


def test_own_vessel_from_signalk():
    doc = {
        "navigation": {
            "position": {"value": {"latitude": 43.0, "longitude": 5.0}},
            "speedOverGround": {"value": 2.0},
            "courseOverGroundTrue": {"value": math.pi / 2},
        }
    }
    own = own_vessel_from_signalk(doc)
    assert own.position == Position(43.0, 5.0)
    assert own.sog == pytest.approx(3.88768)
    assert own.cog == pytest.approx(90.0)
    assert own_vessel_from_signalk({"navigation": {}}) is None


def test_targets_from_signalk_skips_self_and_position_less():
    vessels = {
        "self": {"navigation": {"position": {"value": {"latitude": 1.0, "longitude": 1.0}}}},
        "urn:mrn:imo:mmsi:111": {"navigation": {}},
        "urn:mrn:imo:mmsi:244123456": {
            "name": "ALPHA",
            "navigation": {"position": {"value": {"latitude": 43.1, "longitude": 5.1}}},
            "design": {"aisShipType": {"value": {"id": 70, "name": "Cargo"}}},
        },
    }
    [target] = targets_from_signalk(vessels)
    assert target.target_id == "244123456"
    assert target.name == "ALPHA"
    assert target.ship_type == "Cargo"


# --- TelemetryStore ---

def test_store_applies_own_delta():
    store = TelemetryStore()
    applied = store.apply_delta(_delta(
        "vessels.self",
        ("navigation.position", {"latitude": 43.0, "longitude": 5.0}),
        ("navigation.speedOverGround", 3.0),
        ("navigation.courseOverGroundTrue", math.pi),
        ("environment.depth.belowKeel", 4.0),
    ))
    assert applied == 3
    own = store.get_own_vessel()
    assert own.position == Position(43.0, 5.0)
    assert own.sog == pytest.approx(5.83152)
    assert own.cog == pytest.approx(180.0)


def test_store_without_data_has_no_own_vessel():
    assert TelemetryStore().get_own_vessel() is None
    assert TelemetryStore().apply_delta({"nope": True}) == 0


def test_store_tracks_targets_and_names():
    store = TelemetryStore()
    context = "vessels.urn:mrn:imo:mmsi:244123456"
    store.apply_delta(_delta(context, ("", {"name": "ALPHA"})))
    # No position yet: not a target
    assert store.get_targets() == []
    store.apply_delta(_delta(
        context,
        ("navigation.position", {"latitude": 43.1, "longitude": 5.1}),
        ("communication.callsignVhf", "F1234"),
    ))
    [target] = store.get_targets()
    assert target.target_id == "244123456"
    assert target.name == "ALPHA"
    assert target.callsign == "F1234"


def test_store_drops_stale_targets():
    clock = _FakeClock()
    store = TelemetryStore(target_ttl_seconds=60.0, clock=clock)
    store.apply_delta(_delta("vessels.a", ("navigation.position", {"latitude": 1.0, "longitude": 1.0})))
    clock.now = 30.0
    assert len(store.get_targets()) == 1
    clock.now = 61.0
    assert store.get_targets() == []


def test_position_subscription_is_rate_limited():
    clock = _FakeClock()
    store = TelemetryStore(clock=clock)
    received = []
    unsubscribe = store.subscribe_position(received.append, period_seconds=2.0)

    for t, lat in ((0.0, 1.0), (1.0, 1.1), (2.5, 1.2)):
        clock.now = t
        store.apply_delta(_delta("vessels.self", ("navigation.position", {"latitude": lat, "longitude": 1.0})))
    assert [u.position.latitude for u in received] == [1.0, 1.2]

    unsubscribe()
    clock.now = 10.0
    store.set_own_vessel(OwnVessel(position=Position(2.0, 2.0)))
    assert len(received) == 2


def test_failing_subscriber_does_not_break_ingest():
    store = TelemetryStore()

    def broken(update):
        raise RuntimeError("boom")

    store.subscribe_position(broken, period_seconds=0.0)
    applied = store.apply_delta(_delta("vessels.self", ("navigation.position", {"latitude": 1.0, "longitude": 1.0})))
    assert applied == 1


# --- snapshots ---

def test_load_snapshot(tmp_path):
    path = tmp_path / "snapshot.yaml"
    path.write_text(
        "own_vessel: {latitude: 43.0, longitude: 5.0, sog: 6.0, cog: 90}\n"
        "targets:\n"
        "  - {mmsi: 244123456, name: ALPHA, latitude: 43.02, longitude: 5.0, sog: 12, cog: 180}\n"
        "  - {name: NOPOS}\n"
    )
    own, targets = load_snapshot(path)
    assert own == OwnVessel(position=Position(43.0, 5.0), sog=6.0, cog=90.0)
    assert [t.target_id for t in targets] == ["244123456", "target-1"]
    assert targets[0].sog == 12.0
    assert targets[1].position is None

    provider = StaticTelemetryProvider(own, targets)
    assert provider.get_own_vessel() == own
    assert len(provider.get_targets()) == 2
