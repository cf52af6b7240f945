from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, Optional, Tuple


@dataclass
class Channel:
    """One physical sensor: its recent readings and what was last stored for it."""

    id: str
    capacity: int = 5
    window: Deque[float] = field(init=False, repr=False)
    last_committed: Optional[float] = None

    def __post_init__(self) -> None:
        self.window = deque(maxlen=self.capacity)

    @property
    def current(self) -> Optional[float]:
        return self.window[-1] if self.window else None


@dataclass(frozen=True)
class CommitDecision:
    commit: bool
    values: Dict[str, float]
    reason: str = ""


@dataclass(frozen=True)
class WeightEvent:
    ts_utc: datetime
    channel_ids: Tuple[str, ...]
    readings: Tuple[float, ...]

    def as_mapping(self) -> Dict[str, float]:
        return dict(zip(self.channel_ids, self.readings))

    def to_dict(self) -> dict:
        return {
            "ts_utc": self.ts_utc.isoformat(),
            "readings": self.as_mapping(),
        }
