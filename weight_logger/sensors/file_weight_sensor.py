from __future__ import annotations

import logging
from pathlib import Path

from .base import Sensor

logger = logging.getLogger(__name__)


class FileWeightSensor(Sensor):
    """
    Reads the weight exposed as text by the HX711 kernel driver
    (e.g. /proc/weight1). Any I/O or parse error propagates to the sampler.
    """

    def __init__(self, path: str, sensor_id: str):
        self._path = Path(path)
        self._sensor_id = sensor_id

    @property
    def sensor_id(self) -> str:
        return self._sensor_id

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> float:
        text = self._path.read_text(encoding="utf-8").strip()
        if not text:
            raise ValueError(f"Empty reading from {self._path}")
        value = float(text)
        logger.debug("File read: %s=%s", self._path, value)
        return value
