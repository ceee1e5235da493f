"""HTTP API over timeline generation and playback."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException, Query

from loopviz.core.manager import RunManager
from loopviz.persistence.timeline_io import snapshot_to_dict

router = APIRouter()

_manager: Optional[RunManager] = None


def configure_runs(manager: RunManager) -> None:
    """Inject the run manager from the host app."""
    global _manager
    _manager = manager


def _require_manager() -> RunManager:
    if _manager is None:
        raise HTTPException(status_code=500, detail="Run manager not configured")
    return _manager


def _playback_state(mgr: RunManager) -> Dict[str, Any]:
    current = mgr.playback.current
    return {
        "cursor": mgr.playback.cursor,
        "length": mgr.playback.length,
        "running": mgr.playback.is_running,
        "speed": mgr.playback.config.speed,
        "snapshot": snapshot_to_dict(current) if current else None,
    }


@router.post("/timeline")
def create_timeline(payload: Dict[str, Any] = Body(...)):
    mgr = _require_manager()
    code = payload.get("code")
    if not isinstance(code, str):
        raise HTTPException(status_code=400, detail="code must be a string")
    timeline = mgr.run(code)
    return {"length": len(timeline), "snapshots": [snapshot_to_dict(s) for s in timeline]}


@router.get("/timeline")
def get_timeline():
    mgr = _require_manager()
    return {
        "source": mgr.source,
        "length": len(mgr.timeline),
        "snapshots": [snapshot_to_dict(s) for s in mgr.timeline],
    }


@router.get("/timeline/{index}")
def get_snapshot(index: int):
    mgr = _require_manager()
    snapshot = mgr.snapshot_at(index)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="snapshot not found")
    return snapshot_to_dict(snapshot)


@router.get("/playback")
def get_playback():
    return _playback_state(_require_manager())


@router.post("/playback/step")
def step_playback(payload: Dict[str, Any] = Body(default_factory=dict)):
    mgr = _require_manager()
    direction = payload.get("direction", "forward")
    if direction == "forward":
        mgr.playback.step_forward()
    elif direction == "back":
        mgr.playback.step_back()
    else:
        raise HTTPException(status_code=400, detail="direction must be 'forward' or 'back'")
    return _playback_state(mgr)


@router.post("/playback/seek")
def seek_playback(payload: Dict[str, Any] = Body(...)):
    mgr = _require_manager()
    index = payload.get("index")
    if isinstance(index, bool) or not isinstance(index, int):
        raise HTTPException(status_code=400, detail="index must be an integer")
    mgr.playback.seek(index)
    return _playback_state(mgr)


@router.post("/playback/reset")
def reset_playback():
    mgr = _require_manager()
    mgr.playback.reset()
    return _playback_state(mgr)


@router.post("/playback/speed")
def set_playback_speed(payload: Dict[str, Any] = Body(...)):
    mgr = _require_manager()
    speed = payload.get("speed")
    if isinstance(speed, bool) or not isinstance(speed, (int, float)):
        raise HTTPException(status_code=400, detail="speed must be a number")
    mgr.playback.set_speed(float(speed))
    return _playback_state(mgr)


@router.post("/playback/start")
def start_playback():
    mgr = _require_manager()
    mgr.playback.start()
    return _playback_state(mgr)


@router.post("/playback/stop")
def stop_playback():
    mgr = _require_manager()
    mgr.playback.stop()
    return _playback_state(mgr)


@router.get("/runs/tail")
def runs_tail(limit: int = Query(10, ge=1, le=200)):
    mgr = _require_manager()
    return {"runs": mgr.history(limit), "limit": limit}
