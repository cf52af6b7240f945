from __future__ import annotations
import logging

logger = logging.getLogger(__name__)


class SimulatedStatusLight:
    light_id = "status_light_sim"

    def __init__(self) -> None:
        self.color = (False, False, False)
        self.closed = False

    def set_color(self, red: bool, green: bool, blue: bool) -> None:
        self.color = (bool(red), bool(green), bool(blue))
        logger.info("STATUS LIGHT rgb=%d%d%d", *self.color)

    def close(self) -> None:
        self.color = (False, False, False)
        self.closed = True
