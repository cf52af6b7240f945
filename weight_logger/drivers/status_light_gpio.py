"""RGB status light on three GPIO output lines, driven through lgpio."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..domain.errors import ActuatorError

try:  # pragma: no cover - hardware specific
    import lgpio  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    lgpio = None  # type: ignore

logger = logging.getLogger(__name__)


@dataclass
class RgbPins:
    red: int = 16
    green: int = 20
    blue: int = 21


class GpioStatusLight:
    light_id = "status_light_gpio"

    def __init__(self, pins: RgbPins = RgbPins(), chip: int = 0) -> None:
        if lgpio is None:  # pragma: no cover - hardware specific
            raise ImportError("lgpio module not available")

        self._pins = pins
        self._lgpio = lgpio
        self._handle = None
        try:
            self._handle = self._lgpio.gpiochip_open(chip)
            for pin in (pins.red, pins.green, pins.blue):
                self._lgpio.gpio_claim_output(self._handle, pin, 0)
        except Exception as exc:
            self.close()
            raise ActuatorError(f"Unable to claim status light pins on gpiochip{chip}: {exc}") from exc
        logger.info("GPIO status light ready (chip=%s pins=%s)", chip, pins)

    def set_color(self, red: bool, green: bool, blue: bool) -> None:
        if self._handle is None:
            raise ActuatorError("Status light already closed")
        try:
            self._lgpio.gpio_write(self._handle, self._pins.red, 1 if red else 0)
            self._lgpio.gpio_write(self._handle, self._pins.green, 1 if green else 0)
            self._lgpio.gpio_write(self._handle, self._pins.blue, 1 if blue else 0)
        except Exception as exc:
            raise ActuatorError(f"GPIO write failed: {exc}") from exc

    def close(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            for pin in (self._pins.red, self._pins.green, self._pins.blue):
                try:
                    self._lgpio.gpio_write(handle, pin, 0)
                    self._lgpio.gpio_free(handle, pin)
                except Exception:
                    logger.debug("Failed to release GPIO %s", pin, exc_info=True)
        finally:
            self._lgpio.gpiochip_close(handle)
