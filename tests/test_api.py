"""
HTTP API Tests
==============

Tests for the FastAPI service using the in-process test client.
"""

import json

import pytest
from fastapi.testclient import TestClient

from cast_telemetry.main import app


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _frame(event, timestamp, rtp_timestamp, **extra):
    return {
        "type": "frame",
        "event": event,
        "media_type": "video",
        "timestamp": timestamp,
        "rtp_timestamp": rtp_timestamp,
        **extra,
    }


def _packet(event, timestamp, rtp_timestamp, packet_id):
    return {
        "type": "packet",
        "event": event,
        "media_type": "video",
        "timestamp": timestamp,
        "rtp_timestamp": rtp_timestamp,
        "packet_id": packet_id,
        "size": 1000,
    }


class TestProbes:
    """Tests for service and probe endpoints."""

    def test_root(self, client):
        body = client.get("/").json()
        assert body["service"] == "CastTelemetry"
        assert body["status"] == "running"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client):
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"


class TestStats:
    """Tests for ingest and stats export."""

    def test_ingest_and_snapshot(self, client):
        response = client.post(
            "/events",
            json={
                "events": [
                    _frame("frame_capture_begin", 0.0, 100),
                    _frame("frame_capture_end", 0.010, 100),
                    _frame("frame_encoded", 0.025, 100, size=1000),
                ]
            },
        )
        assert response.status_code == 200
        assert response.json() == {"accepted": 3}

        stats = client.get("/stats").json()
        video = stats["video"]
        assert video["stats"]["NUM_FRAMES_CAPTURED"] == 1
        assert video["histograms"]["ENCODE_LATENCY_MS_HISTO"][1] == {
            "bucket": "0 - 19",
            "count": 1,
        }
        assert "NUM_FRAMES_CAPTURED" not in stats["audio"]["stats"]

    def test_invalid_event_rejected(self, client):
        response = client.post(
            "/events",
            json={"events": [_frame("packet_received", 0.0, 1)]},
        )
        assert response.status_code == 422
    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_event_rejected(self, client, value):
        """A non-finite delay or timestamp is refused and leaves the engines usable."""
        for field in ("delay_delta_ms", "timestamp"):
            event = _frame("frame_playout", 1.0, 7)
            event[field] = value
            response = client.post(
                "/events",
                content=json.dumps({"events": [event]}),
                headers={"Content-Type": "application/json"},
            )
            assert response.status_code == 422
            assert response.json()["detail"]

        assert client.get("/stats").status_code == 200
        assert client.get("/metrics").status_code == 200
        assert "FramePlayout" not in client.get("/metrics").json()["engines"]["video"]["frame_events"]

    def test_non_finite_offset_rejected(self, client):
        client.put("/clock/offset", json={"lower_ms": None, "upper_ms": None})
        response = client.put(
            "/clock/offset",
            content=json.dumps({"lower_ms": float("nan"), "upper_ms": float("nan")}),
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422
        assert client.get("/metrics").json()["clock_offset_available"] is False

    def test_network_latency_needs_offset(self, client):
        client.put("/clock/offset", json={"lower_ms": None, "upper_ms": None})
        events = [
            _packet("packet_sent_to_network", 1.000, 10, 0),
            _packet("packet_received", 1.070, 10, 0),
        ]
        client.post("/events", json={"events": events})
        assert "AVG_NETWORK_LATENCY_MS" not in client.get("/stats").json()["video"]["stats"]

        response = client.put("/clock/offset", json={"lower_ms": 10, "upper_ms": 30})
        assert response.status_code == 200
        client.post("/events", json={"events": events})

        latency = client.get("/stats").json()["video"]["stats"]["AVG_NETWORK_LATENCY_MS"]
        assert latency == pytest.approx(50.0)

    def test_invalid_offset_rejected(self, client):
        response = client.put("/clock/offset", json={"lower_ms": 30, "upper_ms": 10})
        assert response.status_code == 422

    def test_reset(self, client):
        client.post("/events", json={"events": [_frame("frame_capture_end", 0.01, 1)]})
        response = client.post("/reset")
        assert response.status_code == 200

        assert "NUM_FRAMES_CAPTURED" not in client.get("/stats").json()["video"]["stats"]

    def test_metrics(self, client):
        client.post("/events", json={"events": [_frame("frame_encoded", 0.01, 1, size=10)]})
        body = client.get("/metrics").json()

        assert body["events_dispatched"] == 1
        assert body["engines"]["video"]["frame_events"]["FrameEncoded"]["count"] == 1
        assert body["decoder"]["decoded_count"] == 1
        assert body["consumer"] == {}

    def test_ws_stats(self, client):
        with client.websocket_connect("/ws/stats") as websocket:
            snapshot = websocket.receive_json()
        assert set(snapshot) >= {"video"}
