from __future__ import annotations
import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Tuple

from ..core.config import settings
from .interfaces import StatusLight

logger = logging.getLogger(__name__)


class StatusSignal(str, Enum):
    IDLE = "idle"
    CHANGING = "changing"
    STORED = "stored"
    CLIENT_JOINED = "client_joined"
    CLIENT_LEFT = "client_left"
    OFF = "off"


# (red, green, blue)
SIGNAL_COLORS: Dict[StatusSignal, Tuple[bool, bool, bool]] = {
    StatusSignal.IDLE: (False, False, False),
    StatusSignal.CHANGING: (True, False, True),       # pink
    StatusSignal.STORED: (False, True, False),        # green
    StatusSignal.CLIENT_JOINED: (True, True, True),   # white
    StatusSignal.CLIENT_LEFT: (True, False, False),   # red
    StatusSignal.OFF: (False, False, False),
}


def default_revert_seconds() -> Dict[StatusSignal, float]:
    return {
        StatusSignal.CHANGING: settings.changing_revert_seconds,
        StatusSignal.STORED: settings.stored_revert_seconds,
        StatusSignal.CLIENT_JOINED: settings.client_revert_seconds,
        StatusSignal.CLIENT_LEFT: settings.client_revert_seconds,
    }


class StatusRegister:
    """
    Single owner of the operator status light.

    Every transition goes through request(); a new request cancels the pending
    revert-to-idle timer of the previous one (last writer wins, no queue).
    Must be used from the event loop thread.
    """

    def __init__(
        self,
        light: StatusLight,
        revert_seconds: Optional[Mapping[StatusSignal, float]] = None,
        on_change: Optional[Callable[[StatusSignal], None]] = None,
    ) -> None:
        self._light = light
        self._revert_seconds = dict(revert_seconds) if revert_seconds is not None else None
        self._on_change = on_change
        self._current = StatusSignal.IDLE
        self._revert_handle: Optional[asyncio.TimerHandle] = None
        self._revert_at: Optional[float] = None

    @property
    def current(self) -> StatusSignal:
        return self._current

    @property
    def revert_pending(self) -> bool:
        return self._revert_handle is not None

    def seconds_until_revert(self) -> Optional[float]:
        if self._revert_at is None:
            return None
        return max(0.0, self._revert_at - asyncio.get_running_loop().time())

    def _delay_for(self, signal: StatusSignal) -> Optional[float]:
        table = self._revert_seconds if self._revert_seconds is not None else default_revert_seconds()
        return table.get(signal)

    def request(self, signal: StatusSignal) -> None:
        self._cancel_revert()
        self._set(signal)

        delay = self._delay_for(signal)
        if delay is not None and signal not in (StatusSignal.IDLE, StatusSignal.OFF):
            loop = asyncio.get_running_loop()
            self._revert_at = loop.time() + delay
            self._revert_handle = loop.call_later(delay, self._revert_to_idle)

    def shutdown(self) -> None:
        """Drive the light to off and release it. Safe to call without a running loop."""
        self._cancel_revert()
        self._set(StatusSignal.OFF)
        try:
            self._light.close()
        except Exception:
            logger.warning("Status light close failed", exc_info=True)

    def _revert_to_idle(self) -> None:
        self._revert_handle = None
        self._revert_at = None
        self._set(StatusSignal.IDLE)

    def _cancel_revert(self) -> None:
        if self._revert_handle is not None:
            self._revert_handle.cancel()
        self._revert_handle = None
        self._revert_at = None

    def _set(self, signal: StatusSignal) -> None:
        self._current = signal

        # Actuation and notification are best-effort; results are ignored.
        try:
            self._light.set_color(*SIGNAL_COLORS[signal])
        except Exception:
            logger.warning("Status light set %s failed", signal.value, exc_info=True)

        if self._on_change is not None:
            try:
                self._on_change(signal)
            except Exception:
                logger.warning("Status change listener failed", exc_info=True)
