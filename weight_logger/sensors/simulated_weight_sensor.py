from __future__ import annotations

import random
from threading import Lock

from .base import Sensor


class SimulatedWeightSensor(Sensor):
    def __init__(self, sensor_id: str = "weight_sim", weight: float = 0.0, noise: float = 0.0):
        self._sensor_id = sensor_id
        self._lock = Lock()
        self._enabled = True
        self._weight = float(weight)
        self._noise = float(noise)

    @property
    def sensor_id(self) -> str:
        return self._sensor_id

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def set_weight(self, weight: float, noise: float | None = None) -> None:
        with self._lock:
            self._weight = float(weight)
            if noise is not None:
                self._noise = float(noise)

    def status(self) -> dict:
        with self._lock:
            return {
                "sensor_id": self._sensor_id,
                "enabled": self._enabled,
                "weight": self._weight,
                "noise": self._noise,
            }

    def read(self) -> float:
        with self._lock:
            if not self._enabled:
                raise RuntimeError("Simulated sensor disabled")
            v = self._weight
            noise = self._noise

        # Raw value, may dip below zero; the sampler clamps.
        if noise > 0:
            v += random.uniform(-noise, noise)
        return float(v)
