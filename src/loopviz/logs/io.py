"""NDJSON run log for generated timelines."""

import json
import logging
import os
import time
from collections import deque
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)

LOG_DIR = Path(os.getenv("LOOPVIZ_RUN_DIR", "data/runs"))
LOG_RUNS_JSON = LOG_DIR / "runs.json"
LOG_RUNS_TXT = LOG_DIR / "runs.log"


def set_log_dir(run_dir: Path) -> None:
    """Set log directory for subsequent runs."""
    global LOG_DIR, LOG_RUNS_JSON, LOG_RUNS_TXT
    LOG_DIR = Path(run_dir)
    LOG_RUNS_JSON = LOG_DIR / "runs.json"
    LOG_RUNS_TXT = LOG_DIR / "runs.log"


def _format_text_entry(entry: Dict) -> str:
    """Render a compact text log line (no JSON)."""
    parts = []
    ts = entry.get("ts") or time.time()
    parts.append(f"[{ts:.0f}] snapshots={entry.get('snapshots', '-')}")
    if entry.get("error"):
        parts.append("error")
    if entry.get("truncated"):
        parts.append("truncated")
    output = entry.get("output")
    if output:
        parts.append("output=" + " / ".join(output))
    return " | ".join(parts)


def append_ndjson(entry: Dict) -> None:
    """Write the full entry to runs.json and a text line to runs.log."""
    entry = dict(entry)
    entry.setdefault("ts", time.time())
    try:
        os.makedirs(LOG_DIR, exist_ok=True)
        with LOG_RUNS_JSON.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        with LOG_RUNS_TXT.open("a", encoding="utf-8") as f:
            f.write(_format_text_entry(entry) + "\n")
    except OSError as exc:
        # a failing run log must not fail the run itself
        logger.warning("could not write run log to %s: %s", LOG_DIR, exc)


def tail_ndjson(limit: int = 10) -> List[Dict]:
    """Read the last ``limit`` entries from runs.json."""
    if not LOG_RUNS_JSON.exists() or limit <= 0:
        return []
    buf: deque = deque(maxlen=limit)
    with LOG_RUNS_JSON.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                buf.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("skipping malformed run log line")
                continue
    return list(buf)
