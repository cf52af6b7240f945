from __future__ import annotations
from typing import Tuple

from .models import Channel


def is_stable(channel: Channel, stable_eps: float) -> bool:
    """A channel is stable once its window is full and its spread is within stable_eps."""
    w = channel.window
    if len(w) < channel.capacity:
        return False
    return (max(w) - min(w)) <= stable_eps


class StabilityFilter:
    def __init__(self, stable_eps: float = 10.0, change_eps: float = 10.0) -> None:
        self.stable_eps = stable_eps
        self.change_eps = change_eps

    def update(self, channel: Channel, value: float) -> Tuple[bool, bool]:
        """
        Push one reading into the channel window.
        Returns (stable, changed) where `changed` compares against the previous
        reading only; the first reading of a channel is never a change.
        """
        if value < 0:
            raise ValueError(f"Negative reading for channel {channel.id}: {value}")

        previous = channel.current
        changed = previous is not None and abs(value - previous) > self.change_eps

        # deque(maxlen) evicts the oldest
        channel.window.append(float(value))

        return is_stable(channel, self.stable_eps), changed
