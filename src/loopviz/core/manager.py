"""Own the generator, the current timeline and its persistence."""

import hashlib
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional

from loopviz.core.playback import Playback
from loopviz.core.state import Snapshot
from loopviz.engine.generator import ERROR_MESSAGE, LIMIT_MESSAGE, GeneratorConfig, TimelineGenerator
from loopviz.logs.io import append_ndjson, set_log_dir, tail_ndjson
from loopviz.persistence.timeline_io import load_timeline, save_timeline


class RunManager:
    def __init__(self, run_dir: Path | None = None, config: GeneratorConfig | None = None):
        self.run_dir = Path(run_dir or os.getenv("LOOPVIZ_RUN_DIR", "data/runs"))
        self.generator = TimelineGenerator(config)
        self.playback = Playback()
        self._lock = threading.Lock()
        set_log_dir(self.run_dir)
        self.source, self.timeline = load_timeline(self.run_dir)
        self.playback.load(self.timeline)

    def run(self, source: str) -> List[Snapshot]:
        """Generate a timeline for ``source`` and make it the current one."""
        # one generate at a time; the generator rejects reentrant calls
        with self._lock:
            timeline = self.generator.generate(source)
        self.source = source
        self.timeline = timeline
        self.playback.load(timeline)
        save_timeline(timeline, self.run_dir, source)
        append_ndjson(self._summary(source, timeline))
        return timeline

    @staticmethod
    def _summary(source: str, timeline: List[Snapshot]) -> Dict:
        last = timeline[-1]
        return {
            "source_sha1": hashlib.sha1(source.encode("utf-8")).hexdigest(),
            "snapshots": len(timeline),
            "output": list(last.output),
            "error": ERROR_MESSAGE in last.output,
            "truncated": last.description == LIMIT_MESSAGE,
        }

    def history(self, limit: int = 10) -> List[Dict]:
        return tail_ndjson(limit)

    def snapshot_at(self, index: int) -> Optional[Snapshot]:
        if 0 <= index < len(self.timeline):
            return self.timeline[index]
        return None
