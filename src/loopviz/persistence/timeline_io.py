"""Persistence helpers for timelines."""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from loopviz.core.state import (
    CallbackKind,
    DeferredCallback,
    Frame,
    FrameKind,
    PendingTimer,
    PhaseTag,
    ReadyCallback,
    Snapshot,
)


def _jsonable(value):
    if isinstance(value, (FrameKind, CallbackKind, PhaseTag)):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def snapshot_to_dict(snapshot: Snapshot) -> Dict:
    return _jsonable(asdict(snapshot))


def _dict_to_frame(d: Dict) -> Frame:
    return Frame(
        id=d["id"],
        name=d.get("name", d["id"]),
        kind=FrameKind(d.get("kind", FrameKind.FUNCTION.value)),
        line=d.get("line"),
    )


def _dict_to_timer(d: Dict) -> PendingTimer:
    return PendingTimer(
        id=d["id"],
        name=d.get("name", "timer"),
        delay=d.get("delay", 0),
        remaining_time=d.get("remaining_time", d.get("delay", 0)),
        seq=d.get("seq", 0),
        callback_id=d.get("callback_id", f"cb-{d['id']}"),
    )


def _dict_to_deferred(d: Dict) -> DeferredCallback:
    return DeferredCallback(
        id=d["id"],
        name=d.get("name", "microtask"),
        kind=CallbackKind(d.get("kind", CallbackKind.MICROTASK.value)),
        callback_id=d.get("callback_id", f"cb-{d['id']}"),
    )


def _dict_to_ready(d: Dict) -> ReadyCallback:
    return ReadyCallback(
        id=d["id"],
        name=d.get("name", "Macrotask"),
        kind=CallbackKind(d.get("kind", CallbackKind.TIMEOUT.value)),
        callback_id=d.get("callback_id", f"cb-{d['id']}"),
    )


def dict_to_snapshot(d: Dict) -> Snapshot:
    return Snapshot(
        id=d["id"],
        stack=tuple(_dict_to_frame(f) for f in d.get("stack", [])),
        pending_timers=tuple(_dict_to_timer(t) for t in d.get("pending_timers", [])),
        deferred_queue=tuple(_dict_to_deferred(t) for t in d.get("deferred_queue", [])),
        ready_queue=tuple(_dict_to_ready(t) for t in d.get("ready_queue", [])),
        output=tuple(d.get("output", [])),
        highlight_line=d.get("highlight_line"),
        description=d.get("description", ""),
        phase=PhaseTag(d.get("phase", PhaseTag.IDLE.value)),
    )


def save_timeline(timeline: Sequence[Snapshot], base_dir: Path, source: Optional[str] = None) -> Path:
    base_dir = Path(base_dir)
    base_dir.mkdir(parents=True, exist_ok=True)
    path = base_dir / "timeline.json"
    data = {"source": source, "snapshots": [snapshot_to_dict(s) for s in timeline]}
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    return path


def load_timeline(base_dir: Path) -> Tuple[Optional[str], List[Snapshot]]:
    path = Path(base_dir) / "timeline.json"
    if not path.exists():
        return None, []

    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    return raw.get("source"), [dict_to_snapshot(s) for s in raw.get("snapshots", [])]
