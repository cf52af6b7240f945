from __future__ import annotations

import asyncio
from typing import Iterable

import pytest

from weight_logger.core.config import settings
from weight_logger.domain.errors import StorageError
from weight_logger.domain.status import StatusRegister, StatusSignal
from weight_logger.drivers.status_light_sim import SimulatedStatusLight
from weight_logger.sensors.base import Sensor
from weight_logger.services.sampler import SamplerService
from weight_logger.services.sink import EventSink


class ScriptedSensor(Sensor):
    """Returns the scripted values in order, then repeats the last one.
    An Exception instance in the script is raised instead of returned."""

    def __init__(self, sensor_id: str, values: Iterable[object]):
        self._sensor_id = sensor_id
        self._values = list(values)
        self.reads = 0

    @property
    def sensor_id(self) -> str:
        return self._sensor_id

    def extend(self, values: Iterable[object]) -> None:
        self._values = self._values[: self.reads] + list(values)

    def read(self) -> float:
        idx = min(self.reads, len(self._values) - 1)
        self.reads += 1
        value = self._values[idx]
        if isinstance(value, Exception):
            raise value
        return float(value)


class RecordingRepository:
    def __init__(self) -> None:
        self.events = []
        self.fail = False

    async def init(self) -> None:
        pass

    async def append_weight_event(self, event) -> None:
        if self.fail:
            raise StorageError("disk full")
        self.events.append(event)

    async def query_recent_events(self, limit: int):
        return list(reversed(self.events))[:limit]


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.messages = []
        self.fail = False
        self.client_count = 1

    def broadcast(self, topic, payload) -> int:
        if self.fail:
            raise ConnectionError("socket gone")
        self.messages.append((topic, payload))
        return 1

    def topics(self):
        return [t for t, _ in self.messages]


class Pipeline:
    def __init__(self, sensors, repo, hub, light, status, sampler):
        self.sensors = sensors
        self.repo = repo
        self.hub = hub
        self.light = light
        self.status = status
        self.sampler = sampler

    def run_ticks(self, n: int):
        async def _go():
            return [await self.sampler.tick() for _ in range(n)]

        return asyncio.run(_go())


LONG_REVERTS = {
    StatusSignal.CHANGING: 60.0,
    StatusSignal.STORED: 60.0,
    StatusSignal.CLIENT_JOINED: 60.0,
    StatusSignal.CLIENT_LEFT: 60.0,
}


@pytest.fixture(autouse=True)
def _restore_settings():
    saved = settings.model_dump()
    yield
    for key, value in saved.items():
        setattr(settings, key, value)


@pytest.fixture()
def make_pipeline():
    def _make(*scripts, repo=None, hub=None) -> Pipeline:
        sensors = [ScriptedSensor(f"sensor{i + 1}", values) for i, values in enumerate(scripts)]
        repo = repo or RecordingRepository()
        hub = hub or RecordingBroadcaster()
        light = SimulatedStatusLight()
        status = StatusRegister(light, revert_seconds=LONG_REVERTS)
        sampler = SamplerService(sensors, EventSink(repo, hub), status, hub, window_size=5)
        return Pipeline(sensors, repo, hub, light, status, sampler)

    return _make
