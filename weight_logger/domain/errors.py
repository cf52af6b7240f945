from __future__ import annotations


class WeightLoggerError(Exception):
    """Base class for domain errors."""


class SensorReadError(WeightLoggerError, OSError):
    """A channel could not be read; the whole sampling tick is aborted."""

    def __init__(self, channel_id: str, message: str) -> None:
        super().__init__(f"Sensor {channel_id} read failed: {message}")
        self.channel_id = channel_id


class StorageError(WeightLoggerError):
    """Persisting or querying weight events failed."""


class ActuatorError(WeightLoggerError):
    """The status light rejected a command. Never propagated into the loop."""
