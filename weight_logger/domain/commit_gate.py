from __future__ import annotations
import logging
from typing import Dict, Mapping, Sequence

from .models import Channel, CommitDecision

logger = logging.getLogger(__name__)


class CommitGate:
    """
    Decides whether the current reading set is worth storing.

    A set is stored when every channel is stable together and either nothing
    was stored yet for some channel or at least one channel moved by more than
    change_eps since the last stored set.
    """

    def __init__(self, change_eps: float = 10.0) -> None:
        self.change_eps = change_eps

    def evaluate(self, channels: Sequence[Channel], verdicts: Mapping[str, bool]) -> CommitDecision:
        values: Dict[str, float] = {}
        for ch in channels:
            if ch.current is None:
                return CommitDecision(False, {}, f"No reading yet on {ch.id}")
            values[ch.id] = ch.current

        unstable = [ch.id for ch in channels if not verdicts.get(ch.id, False)]
        if unstable:
            return CommitDecision(False, values, f"Unstable: {', '.join(unstable)}")

        if any(ch.last_committed is None for ch in channels):
            return CommitDecision(True, values, "First stable reading")

        moved = [
            ch.id for ch in channels
            if abs(values[ch.id] - ch.last_committed) > self.change_eps
        ]
        if moved:
            return CommitDecision(True, values, f"Changed since last commit: {', '.join(moved)}")

        return CommitDecision(False, values, "Unchanged since last commit")

    def mark_committed(self, channels: Sequence[Channel], values: Mapping[str, float]) -> None:
        # All channels or none; a missing value leaves every channel untouched.
        missing = [ch.id for ch in channels if ch.id not in values]
        if missing:
            raise KeyError(f"No committed value for channels: {missing}")
        for ch in channels:
            ch.last_committed = float(values[ch.id])
        logger.debug("last_committed updated: %s", dict(values))
