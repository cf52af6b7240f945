from __future__ import annotations

from contextlib import asynccontextmanager

import pytest

pytest.importorskip("fastapi")

from fastapi import FastAPI
from fastapi.testclient import TestClient

import weight_logger.api.routes as routes
from weight_logger.api.ws import ws_router
from weight_logger.core.config import settings
from weight_logger.domain.status import StatusRegister, StatusSignal
from weight_logger.drivers.status_light_sim import SimulatedStatusLight
from weight_logger.sensors.simulated_weight_sensor import SimulatedWeightSensor
from weight_logger.services.broadcaster import WebSocketBroadcaster
from weight_logger.services.sampler import SamplerService
from weight_logger.services.sink import EventSink
from weight_logger.storage.sqlite_repo import SQLiteRepository

from conftest import LONG_REVERTS


class Harness:
    def __init__(self, tmp_path):
        self.repo = SQLiteRepository(str(tmp_path / "api.db"))
        self.hub = WebSocketBroadcaster()
        self.light = SimulatedStatusLight()
        self.status = StatusRegister(self.light, revert_seconds=LONG_REVERTS)
        self.sims = {
            "sensor1": SimulatedWeightSensor("sensor1", weight=100.0),
            "sensor2": SimulatedWeightSensor("sensor2", weight=50.0),
        }
        self.sampler = SamplerService(
            list(self.sims.values()), EventSink(self.repo, self.hub), self.status, self.hub, window_size=5
        )

        @asynccontextmanager
        async def lifespan(app):
            await self.repo.init()
            yield

        app = FastAPI(lifespan=lifespan)
        app.dependency_overrides[routes.get_sampler] = lambda: self.sampler
        app.dependency_overrides[routes.get_status] = lambda: self.status
        app.dependency_overrides[routes.get_repo] = lambda: self.repo
        app.dependency_overrides[routes.get_broadcaster] = lambda: self.hub
        app.dependency_overrides[routes.get_sim_sensors] = lambda: self.sims
        app.include_router(routes.router, prefix="/api")
        app.include_router(ws_router)

        @app.get("/_tick")
        async def _tick(n: int = 1):
            for _ in range(n):
                await self.sampler.tick()
            return {"ok": True}

        self.app = app


@pytest.fixture()
def harness(tmp_path):
    return Harness(tmp_path)


@pytest.fixture()
def client(harness):
    with TestClient(harness.app) as c:
        yield c


def test_live_reports_channels_and_status(client, harness):
    client.get("/_tick", params={"n": 5})
    payload = client.get("/api/live").json()
    assert payload["sensor_ok"] is True
    assert [c["id"] for c in payload["channels"]] == ["sensor1", "sensor2"]
    assert payload["channels"][0]["stable"] is True
    assert payload["channels"][0]["last_committed"] == 100.0
    assert payload["last_event"]["readings"] == {"sensor1": 100.0, "sensor2": 50.0}
    assert payload["status"] == "stored"


def test_events_newest_first(client):
    client.get("/_tick", params={"n": 5})
    client.post("/api/sim/weight", json={"channel": "sensor1", "weight": 250})
    client.get("/_tick", params={"n": 5})
    rows = client.get("/api/events", params={"limit": 10}).json()["rows"]
    assert [r["readings"]["sensor1"] for r in rows] == [250.0, 100.0]


def test_sim_disable_marks_sensor_fault(client):
    resp = client.post("/api/sim/disable", params={"channel": "sensor2"})
    assert resp.json()["disabled"] == ["sensor2"]
    client.get("/_tick")
    live = client.get("/api/live").json()
    assert live["sensor_ok"] is False
    assert "sensor2" in live["last_error"]
    assert all(c["window"] == [] for c in live["channels"])


def test_sim_unknown_channel_404(client):
    resp = client.post("/api/sim/weight", json={"channel": "sensor9", "weight": 1})
    assert resp.status_code == 404


def test_settings_update_applies_thresholds(client, harness):
    resp = client.put("/api/settings", json={"updates": {"stable_eps": "25", "sensor_mode": "file"}})
    body = resp.json()
    assert resp.status_code == 200
    assert body["runtime_applied"] == ["stable_eps"]
    assert body["restart_required"] == ["sensor_mode"]
    assert settings.stable_eps == 25.0
    assert harness.sampler._filter.stable_eps == 25.0
    current = client.get("/api/settings").json()["settings"]
    assert current["stable_eps"] == 25.0


@pytest.mark.parametrize(
    "updates",
    [
        {"not_a_setting": 1},
        {"stable_eps": "abc"},
        {"change_eps": -1},
        {"sample_seconds": 0},
        {"recent_broadcast_seconds": "0"},
    ],
)
def test_settings_update_rejects_bad_input(client, updates):
    assert client.put("/api/settings", json={"updates": updates}).status_code == 400


def test_apply_persisted_settings_only_runtime_keys():
    applied = routes.apply_persisted_settings(
        {"change_eps": "12.5", "sqlite_path": "\"other.db\"", "recent_limit": "not json", "sample_seconds": "0"}
    )
    assert applied == ["change_eps"]
    assert settings.change_eps == 12.5
    assert settings.sqlite_path != "other.db"
    assert settings.sample_seconds > 0


def test_websocket_snapshot_and_status_signals(client, harness):
    client.get("/_tick", params={"n": 5})
    with client.websocket_connect("/ws") as ws:
        first = ws.receive_json()
        assert first["topic"] == "initialWeightData"
        assert first["data"][0]["readings"] == {"sensor1": 100.0, "sensor2": 50.0}
        assert harness.status.current is StatusSignal.CLIENT_JOINED
        assert harness.light.color == (True, True, True)
        assert harness.hub.client_count == 1

        ws.send_text("ping")
        assert ws.receive_text() == "pong"

    client.get("/api/status")
    assert harness.hub.client_count == 0
    assert harness.status.current is StatusSignal.CLIENT_LEFT
    assert harness.light.color == (True, False, False)


def test_status_endpoint_reports_pending_revert(client):
    client.get("/_tick", params={"n": 5})
    body = client.get("/api/status").json()
    assert body["status"] == "stored"
    assert body["revert_pending"] is True
    assert 0 < body["seconds_until_revert"] <= 60.0


def test_websocket_cleans_up_when_snapshot_fails(client, harness, monkeypatch):
    async def corrupt(limit):
        raise ValueError("corrupt row")

    monkeypatch.setattr(harness.repo, "query_recent_events", corrupt)
    with client.websocket_connect("/ws") as ws:
        ws.send_text("ping")
        assert ws.receive_text() == "pong"
        assert harness.hub.client_count == 1

    assert harness.hub.client_count == 0
    assert harness.status.current is StatusSignal.CLIENT_LEFT
