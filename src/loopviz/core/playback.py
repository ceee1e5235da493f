"""Cursor and auto-advance over a generated timeline."""

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from loopviz.core.state import Snapshot

logger = logging.getLogger(__name__)


@dataclass
class PlaybackConfig:
    interval_seconds: float = 1.0  # real seconds per step before scaling
    speed: float = 1.0  # multiplier; 2.0 = 2x speed


def _env_interval(default: float) -> float:
    raw = os.getenv("LOOPVIZ_PLAYBACK_INTERVAL")
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("ignoring non-numeric LOOPVIZ_PLAYBACK_INTERVAL=%r, using %s", raw, default)
        return default


class Playback:
    """Index cursor clamped to the loaded timeline, with optional auto-advance."""

    def __init__(self, timeline: Sequence[Snapshot] = (), config: PlaybackConfig | None = None):
        self.config = config or PlaybackConfig(
            interval_seconds=_env_interval(PlaybackConfig.interval_seconds)
        )
        self._timeline: List[Snapshot] = list(timeline)
        self._cursor = 0
        self._lock = threading.Lock()
        self._running = False
        self._loop_thread: Optional[threading.Thread] = None
        self._on_step: Optional[Callable[[int], None]] = None

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def length(self) -> int:
        return len(self._timeline)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def at_end(self) -> bool:
        return self._cursor >= self.length - 1

    @property
    def current(self) -> Optional[Snapshot]:
        if not self._timeline:
            return None
        return self._timeline[self._cursor]

    def load(self, timeline: Sequence[Snapshot]) -> None:
        self.stop()
        with self._lock:
            self._timeline = list(timeline)
            self._cursor = 0

    def seek(self, index: int) -> Optional[Snapshot]:
        with self._lock:
            self._cursor = min(max(0, index), max(0, self.length - 1))
        return self.current

    def step_forward(self) -> Optional[Snapshot]:
        return self.seek(self._cursor + 1)

    def step_back(self) -> Optional[Snapshot]:
        return self.seek(self._cursor - 1)

    def reset(self) -> Optional[Snapshot]:
        self.stop()
        return self.seek(0)

    def set_speed(self, speed: float) -> None:
        self.config.speed = max(0.1, speed)

    def start(self, on_step: Callable[[int], None] | None = None) -> None:
        """Advance one snapshot per interval in background until the end or stop."""
        if self._running or self.at_end:
            return
        self._on_step = on_step
        self._running = True
        self._loop_thread = threading.Thread(target=self._loop, daemon=True)
        self._loop_thread.start()

    def _loop(self) -> None:
        while self._running:
            time.sleep(self.config.interval_seconds / self.config.speed)
            if not self._running:
                break
            self.step_forward()
            if self._on_step is not None:
                self._on_step(self._cursor)
            if self.at_end:
                self._running = False

    def stop(self) -> None:
        self._running = False
        if self._loop_thread and self._loop_thread.is_alive() and self._loop_thread is not threading.current_thread():
            self._loop_thread.join(timeout=0.1)
        self._loop_thread = None
