"""Timeline generator: runs a script and drains its queues like an event loop."""

import logging
import os
import threading
from dataclasses import dataclass
from typing import List, Optional

from loopviz.core.locator import LineLocator
from loopviz.core.recorder import SnapshotRecorder
from loopviz.core.state import (
    CallbackKind,
    Frame,
    FrameKind,
    LoopState,
    PhaseTag,
    ReadyCallback,
    Snapshot,
)
from loopviz.engine.runtime import MockRuntime

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Error executing code. Please use supported syntax."
LIMIT_MESSAGE = "Event loop stopped: iteration limit reached"


class GeneratorBusyError(RuntimeError):
    """Raised when generate is re-entered on the same generator."""


class _IterationLimit(Exception):
    pass


@dataclass
class GeneratorConfig:
    max_iterations: int = 50  # outer loop passes
    max_microtasks: int = 1000  # deferred callbacks drained in a single pass
    record_iteration_limit: bool = True  # append an explicit snapshot when the cap stops the loop


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


class TimelineGenerator:
    def __init__(self, config: GeneratorConfig | None = None):
        self.config = config or GeneratorConfig(
            max_iterations=_env_int("LOOPVIZ_MAX_ITERATIONS", GeneratorConfig.max_iterations),
            max_microtasks=_env_int("LOOPVIZ_MAX_MICROTASKS", GeneratorConfig.max_microtasks),
        )
        self.recorder = SnapshotRecorder()
        self.locator = LineLocator()
        self._guard = threading.Lock()

    def generate(self, source: str) -> List[Snapshot]:
        """Return the full ordered snapshot timeline for ``source``.

        Script errors and runaway scheduling never propagate: the timeline
        simply ends early. Only re-entering a running generator raises.
        """
        if not self._guard.acquire(blocking=False):
            raise GeneratorBusyError("generate is already running on this generator")
        try:
            return self._generate(source)
        finally:
            self._guard.release()

    def _generate(self, source: str) -> List[Snapshot]:
        self.recorder.reset()
        self.locator.reset(source)
        state = LoopState()

        def update(label: str, line: Optional[int] = None, phase: PhaseTag = PhaseTag.IDLE) -> None:
            self.recorder.record(
                state.stack,
                state.pending_timers,
                state.deferred_queue,
                state.ready_queue,
                state.output,
                line,
                label,
                phase,
            )

        update("Idle")
        state.stack.append(Frame(id="main", name="main()", kind=FrameKind.MAIN, line=1))
        update("Start script execution", 1)

        runtime = MockRuntime(state, self.locator, update)
        try:
            code = compile(source, "<script>", "exec")
            exec(code, runtime.namespace())
            state.stack.pop()
            update("Main script finished")
            self._run_event_loop(state, runtime, update)
        except _IterationLimit:
            logger.info("iteration limit reached; timeline truncated")
            if self.config.record_iteration_limit:
                update(LIMIT_MESSAGE)
        except (Exception, SystemExit) as exc:
            logger.warning("script execution failed: %s", exc, exc_info=True)
            state.stack.clear()
            state.output.append(ERROR_MESSAGE)
            update("Error", None, PhaseTag.IDLE)

        last = self.recorder.snapshots[-1]
        if last.stack:
            self.recorder.record(
                [], last.pending_timers, last.deferred_queue, last.ready_queue, last.output, None, "Finished"
            )
        return list(self.recorder.snapshots)

    def _run_event_loop(self, state: LoopState, runtime: MockRuntime, update) -> None:
        limit = self.config.max_iterations
        loops = 0
        while state.has_work():
            if loops >= limit:
                raise _IterationLimit()
            loops += 1

            update("Event Loop: Checking Call Stack...", None, PhaseTag.CHECKING)
            if state.stack:
                continue

            # 1. drain every deferred callback, including ones queued while draining
            if state.deferred_queue:
                update("Event Loop: Microtasks found!", None, PhaseTag.CHECKING)
            drained = 0
            while state.deferred_queue:
                if drained >= self.config.max_microtasks:
                    raise _IterationLimit()
                drained += 1
                task = state.deferred_queue.pop(0)
                update("Event Loop: Moving Microtask to Call Stack", None, PhaseTag.PROMOTING_DEFERRED)

                state.stack.append(Frame(id=task.id, name="Microtask Callback", kind=FrameKind.PROMISE_CALLBACK))
                update("Run Microtask")
                runtime.invoke(task.callback_id)
                state.stack.pop()
                update("Microtask finished")

                if state.deferred_queue:
                    update("Event Loop: Checking next Microtask...", None, PhaseTag.CHECKING)

            # 2. at most one timer per pass, only with the deferred queue empty
            if state.pending_timers:
                update("Event Loop: Microtasks empty. Checking Macrotasks...", None, PhaseTag.CHECKING)
                timer = min(state.pending_timers, key=lambda t: (t.delay, t.seq))
                state.pending_timers.remove(timer)
                state.ready_queue.append(
                    ReadyCallback(id=timer.id, name="Macrotask", kind=CallbackKind.TIMEOUT, callback_id=timer.callback_id)
                )
                update("Timer finished -> Macrotask Queue", None, PhaseTag.PROMOTING_READY)
                update("Event Loop: Moving Macrotask to Call Stack", None, PhaseTag.PROMOTING_READY)

                task = state.ready_queue.pop(0)
                state.stack.append(Frame(id=task.id, name="Timeout Callback", kind=FrameKind.TIMEOUT_CALLBACK))
                update("Run Macrotask")
                runtime.invoke(task.callback_id)
                state.stack.pop()
                update("Macrotask finished")
            elif loops == 1:
                update("Event Loop: No tasks in queues", None, PhaseTag.CHECKING)
