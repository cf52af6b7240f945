from __future__ import annotations

from abc import ABC, abstractmethod


class Sensor(ABC):
    """Domain-facing weight sensor abstraction."""

    @property
    @abstractmethod
    def sensor_id(self) -> str:
        ...

    @property
    def unit(self) -> str:
        return "g"

    @abstractmethod
    def read(self) -> float:
        """Return a raw scalar reading. Raise on failure."""
        ...
