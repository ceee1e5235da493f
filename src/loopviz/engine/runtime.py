"""Mock runtime: the intercepted primitives injected into a script."""

import functools
from types import SimpleNamespace
from typing import Any, Callable, Dict, Optional

from loopviz.core.locator import LineLocator
from loopviz.core.state import (
    CallbackKind,
    DeferredCallback,
    Frame,
    FrameKind,
    LoopState,
    PendingTimer,
)

Update = Callable[..., None]


class _ResolvedPromise:
    """An already-settled value; ``then`` only schedules a continuation."""

    def __init__(self, runtime: "MockRuntime", value: Any = None):
        self._runtime = runtime
        self.value = value

    def then(self, callback: Callable) -> None:
        self._runtime.promise_then(callback)


class MockRuntime:
    """Implements print, timer registration, deferred scheduling and ``then``.

    Every primitive pushes a frame for itself, applies its effect and pops the
    frame, recording a snapshot at each of the three points through ``update``.
    Callbacks are kept here by id and handed out exactly once by ``invoke``.
    """

    def __init__(self, state: LoopState, locator: LineLocator, update: Update):
        self.state = state
        self.locator = locator
        self.update = update
        self.callbacks: Dict[str, Callable[[], Any]] = {}
        self._seq = 0

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}-{self._seq}"

    def _enter(self, name: str, line: Optional[int], label: str) -> None:
        self.state.stack.append(Frame(id=self._next_id("frame"), name=name, kind=FrameKind.FUNCTION, line=line))
        self.update(label, line)

    def _exit(self, name: str, line: Optional[int]) -> None:
        self.state.stack.pop()
        self.update(f"Pop {name}", line)

    # primitives

    def log(
        self, *values: Any, name: str = "console.log", sep: Optional[str] = " ", end=None, file=None, flush=False
    ) -> None:
        """Append one output line; ``end``, ``file`` and ``flush`` are accepted for ``print`` and ignored."""
        msg = (" " if sep is None else sep).join(str(v) for v in values)
        line = self.locator.locate_next(f"log-{msg}", f"{name}('{msg}')", f'{name}("{msg}")')

        self.state.stack.append(Frame(id=self._next_id("frame"), name=name, kind=FrameKind.CONSOLE_LOG, line=line))
        self.update(f"{name}('{msg}')", line)

        self.state.output.append(msg)
        self.update(f"Output: {msg}", line)

        self.state.stack.pop()
        self.update(f"Pop {name}", line)

    def set_timeout(self, callback: Callable, delay: float = 0, *args: Any, name: str = "setTimeout") -> str:
        if not callable(callback):
            raise TypeError(f"{name} callback must be callable")
        if isinstance(delay, bool) or not isinstance(delay, (int, float)):
            raise TypeError(f"{name} delay must be a number, got {type(delay).__name__}")
        delay = max(0, delay)
        line = self.locator.locate_next(name, name)

        self._enter(name, line, f"{name}(..., {delay})")
        timer_id = self._next_id("timer")
        callback_id = f"cb-{timer_id}"
        self.callbacks[callback_id] = functools.partial(callback, *args) if args else callback
        self.state.pending_timers.append(
            PendingTimer(
                id=timer_id,
                name="timer",
                delay=delay,
                remaining_time=delay,
                seq=self._seq,
                callback_id=callback_id,
            )
        )
        self.update("Add to Web APIs", line)
        self._exit(name, line)
        return timer_id

    def queue_microtask(self, callback: Callable, name: str = "queueMicrotask") -> None:
        line = self.locator.locate_next(name, name)
        self._enter(name, line, f"{name}(...)")
        self._schedule_deferred(callback, CallbackKind.MICROTASK, "microtask")
        self.update("Add to Microtask Queue", line)
        self._exit(name, line)

    def promise_then(self, callback: Callable) -> None:
        line = self.locator.locate_next("then", ".then")
        self._enter("Promise.then", line, "Promise.resolve().then(...)")
        self._schedule_deferred(callback, CallbackKind.CONTINUATION, "promise.then")
        self.update("Add to Microtask Queue", line)
        self._exit("Promise.then", line)

    def _schedule_deferred(self, callback: Callable, kind: CallbackKind, label: str) -> None:
        if not callable(callback):
            raise TypeError(f"{label} callback must be callable")
        task_id = self._next_id("microtask")
        callback_id = f"cb-{task_id}"
        self.callbacks[callback_id] = callback
        self.state.deferred_queue.append(
            DeferredCallback(id=task_id, name=label, kind=kind, callback_id=callback_id)
        )

    def invoke(self, callback_id: str) -> None:
        """Run a scheduled callback; it is removed first so it can never run twice."""
        callback = self.callbacks.pop(callback_id)
        callback()

    def namespace(self) -> Dict[str, Any]:
        """Globals injected into the script."""
        console = SimpleNamespace(log=self.log)
        promise = SimpleNamespace(resolve=lambda value=None: _ResolvedPromise(self, value))
        return {
            "__name__": "__script__",
            "console": console,
            "print": functools.partial(self.log, name="print"),
            "setTimeout": self.set_timeout,
            "set_timeout": functools.partial(self.set_timeout, name="set_timeout"),
            "queueMicrotask": self.queue_microtask,
            "queue_microtask": functools.partial(self.queue_microtask, name="queue_microtask"),
            "Promise": promise,
        }
