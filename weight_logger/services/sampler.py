from __future__ import annotations
import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..core.timeutil import now_utc
from ..core.config import settings
from ..domain.commit_gate import CommitGate
from ..domain.errors import SensorReadError
from ..domain.interfaces import Broadcaster
from ..domain.models import Channel, CommitDecision, WeightEvent
from ..domain.stability import StabilityFilter
from ..domain.status import StatusRegister, StatusSignal
from ..sensors.base import Sensor
from .sink import EventSink


logger = logging.getLogger(__name__)


def sample(sensors: Sequence[Sensor]) -> Dict[str, float]:
    """
    Read every sensor once, clamping negatives to zero.
    All or nothing: the first failing sensor raises SensorReadError and no
    value of this tick is returned.
    """
    values: Dict[str, float] = {}
    for s in sensors:
        try:
            raw = float(s.read())
        except Exception as e:
            raise SensorReadError(s.sensor_id, str(e) or type(e).__name__) from e
        if not math.isfinite(raw):
            raise SensorReadError(s.sensor_id, f"non-finite reading {raw!r}")
        values[s.sensor_id] = max(0.0, raw)
    return values


@dataclass
class LiveState:
    readings: Dict[str, float] = field(default_factory=dict)
    stable: Dict[str, bool] = field(default_factory=dict)
    last_tick_utc: Optional[datetime] = None
    sensor_ok: bool = True
    last_error: Optional[str] = None
    last_event: Optional[WeightEvent] = None
    last_decision: Optional[str] = None
    ticks: int = 0
    failed_ticks: int = 0


class SamplerService:
    def __init__(
        self,
        sensors: Sequence[Sensor],
        sink: EventSink,
        status: StatusRegister,
        broadcaster: Broadcaster,
        window_size: Optional[int] = None,
    ) -> None:
        ids = [s.sensor_id for s in sensors]
        if not ids:
            raise ValueError("At least one sensor is required")
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate sensor ids: {ids}")

        self._sensors = list(sensors)
        self._sink = sink
        self._status = status
        self._broadcaster = broadcaster

        capacity = window_size if window_size is not None else settings.window_size
        self._channels = [Channel(id=i, capacity=capacity) for i in ids]
        self._filter = StabilityFilter(settings.stable_eps, settings.change_eps)
        self._gate = CommitGate(settings.change_eps)
        # Values already broadcast while storage keeps failing
        self._announced: Optional[Dict[str, float]] = None

        self._task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None

        self.live = LiveState()

    @property
    def channels(self) -> List[Channel]:
        return list(self._channels)

    def reconfigure(self) -> None:
        """Pick up runtime-tunable thresholds from settings."""
        self._filter.stable_eps = settings.stable_eps
        self._filter.change_eps = settings.change_eps
        self._gate.change_eps = settings.change_eps

    async def start(self) -> None:
        # Bound to the running loop; a later lifespan gets a fresh one
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="sampler_loop")

    async def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        if self._task:
            await self._task
            self._task = None

    def _already_announced(self, values: Dict[str, float]) -> bool:
        if self._announced is None:
            return False
        return all(
            abs(values[cid] - self._announced[cid]) <= self._gate.change_eps
            for cid in values
        )

    async def tick(self) -> Optional[CommitDecision]:
        """One evaluation: sample, filter, gate, sink. Returns None when sampling failed."""
        loop = asyncio.get_running_loop()
        try:
            # Blocking reads, all channels in one executor call
            values = await loop.run_in_executor(None, sample, self._sensors)
        except SensorReadError as e:
            self.live.sensor_ok = False
            self.live.last_error = str(e)
            self.live.failed_ticks += 1
            logger.warning("Tick skipped: %s", e)
            return None

        self.live.ticks += 1
        self.live.sensor_ok = True
        self.live.last_error = None
        self.live.last_tick_utc = now_utc()

        verdicts: Dict[str, bool] = {}
        changed_any = False
        for ch in self._channels:
            stable, changed = self._filter.update(ch, values[ch.id])
            verdicts[ch.id] = stable
            changed_any = changed_any or changed

        self.live.readings = dict(values)
        self.live.stable = dict(verdicts)

        try:
            self._broadcaster.broadcast("weightUpdate", dict(values))
        except Exception:
            logger.warning("Broadcast of live weights failed", exc_info=True)

        if changed_any:
            self._status.request(StatusSignal.CHANGING)

        decision = self._gate.evaluate(self._channels, verdicts)
        self.live.last_decision = decision.reason

        if decision.commit:
            event = WeightEvent(
                ts_utc=now_utc(),
                channel_ids=tuple(ch.id for ch in self._channels),
                readings=tuple(decision.values[ch.id] for ch in self._channels),
            )
            announce = not self._already_announced(decision.values)
            persisted = await self._sink.publish(event, broadcast=announce)
            if announce:
                self._announced = dict(decision.values)
            if persisted:
                self._announced = None
                self._gate.mark_committed(self._channels, decision.values)
                self.live.last_event = event
                # Applied after CHANGING so a commit wins within the same tick
                self._status.request(StatusSignal.STORED)
            else:
                logger.warning("Commit not confirmed; will retry while stable: %s", decision.values)

        return decision

    async def _run(self) -> None:
        logger.info(
            "Sampler loop started (sample_seconds=%s window=%s channels=%s)",
            settings.sample_seconds,
            self._channels[0].capacity,
            [ch.id for ch in self._channels],
        )

        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception as e:
                logger.exception("Sampler loop error: %s", e)

            # sleep with cancellation awareness
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=settings.sample_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Sampler loop stopped")
