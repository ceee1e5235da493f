"""Scheduler entities and the live state of one timeline run."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class FrameKind(str, Enum):
    MAIN = "MAIN"
    FUNCTION = "FUNCTION"  # intercepted primitive call
    PROMISE_CALLBACK = "PROMISE"
    TIMEOUT_CALLBACK = "TIMEOUT"
    CONSOLE_LOG = "LOG"


class CallbackKind(str, Enum):
    MICROTASK = "microtask"
    CONTINUATION = "promise.then"
    TIMEOUT = "timeout"


class PhaseTag(str, Enum):
    """What the event loop is doing in a snapshot."""

    IDLE = "idle"
    CHECKING = "checking"
    PROMOTING_DEFERRED = "promoting_deferred"
    PROMOTING_READY = "promoting_ready"


@dataclass(frozen=True)
class Frame:
    id: str
    name: str
    kind: FrameKind
    line: Optional[int] = None


@dataclass(frozen=True)
class PendingTimer:
    id: str
    name: str
    delay: float
    remaining_time: float  # symbolic, never decremented
    seq: int  # creation order, tie-break for equal delays
    callback_id: str


@dataclass(frozen=True)
class DeferredCallback:
    id: str
    name: str
    kind: CallbackKind
    callback_id: str


@dataclass(frozen=True)
class ReadyCallback:
    id: str
    name: str
    kind: CallbackKind
    callback_id: str


@dataclass(frozen=True)
class Snapshot:
    id: int
    stack: Tuple[Frame, ...]
    pending_timers: Tuple[PendingTimer, ...]
    deferred_queue: Tuple[DeferredCallback, ...]
    ready_queue: Tuple[ReadyCallback, ...]
    output: Tuple[str, ...]
    highlight_line: Optional[int]
    description: str
    phase: PhaseTag


@dataclass
class LoopState:
    """Mutable scheduler state owned by a single generate call."""

    stack: List[Frame] = field(default_factory=list)
    pending_timers: List[PendingTimer] = field(default_factory=list)
    deferred_queue: List[DeferredCallback] = field(default_factory=list)
    ready_queue: List[ReadyCallback] = field(default_factory=list)
    output: List[str] = field(default_factory=list)

    def has_work(self) -> bool:
        return bool(self.pending_timers or self.deferred_queue or self.ready_queue)
