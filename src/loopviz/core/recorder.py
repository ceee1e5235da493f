"""Snapshot recorder: freezes scheduler state into an append-only timeline."""

import copy
from typing import List, Optional, Sequence

from loopviz.core.state import (
    DeferredCallback,
    Frame,
    PendingTimer,
    PhaseTag,
    ReadyCallback,
    Snapshot,
)


class SnapshotRecorder:
    def __init__(self):
        self.snapshots: List[Snapshot] = []
        self._next_id = 0

    def reset(self) -> None:
        self.snapshots = []
        self._next_id = 0

    def record(
        self,
        stack: Sequence[Frame],
        pending_timers: Sequence[PendingTimer],
        deferred_queue: Sequence[DeferredCallback],
        ready_queue: Sequence[ReadyCallback],
        output: Sequence[str],
        line: Optional[int],
        label: str,
        phase: PhaseTag = PhaseTag.IDLE,
    ) -> Snapshot:
        """Deep-copy every collection, assign the next id and append the snapshot."""
        snapshot = Snapshot(
            id=self._next_id,
            stack=tuple(copy.deepcopy(list(stack))),
            pending_timers=tuple(copy.deepcopy(list(pending_timers))),
            deferred_queue=tuple(copy.deepcopy(list(deferred_queue))),
            ready_queue=tuple(copy.deepcopy(list(ready_queue))),
            output=tuple(str(text) for text in output),
            highlight_line=line,
            description=label,
            phase=phase,
        )
        self._next_id += 1
        self.snapshots.append(snapshot)
        return snapshot
