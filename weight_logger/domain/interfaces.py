from __future__ import annotations
from typing import Any, Protocol, runtime_checkable
from .models import WeightEvent


@runtime_checkable
class StatusLight(Protocol):
    light_id: str

    def set_color(self, red: bool, green: bool, blue: bool) -> None:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Repository(Protocol):
    async def init(self) -> None:
        ...

    async def append_weight_event(self, event: WeightEvent) -> None:
        ...

    async def query_recent_events(self, limit: int) -> list[WeightEvent]:
        ...


@runtime_checkable
class Broadcaster(Protocol):
    def broadcast(self, topic: str, payload: Any) -> int:
        ...
