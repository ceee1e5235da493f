"""Map intercepted calls back to source lines.

This is a text heuristic, not a parser: a call is matched by a substring of
the source line (e.g. ``console.log('Start')``). Repeated identical calls
resolve to successive matching lines through a per-key occurrence counter.
When nothing matches the locator returns ``None`` and the snapshot simply has
no highlight.
"""

from typing import Dict, List, Optional


class LineLocator:
    def __init__(self, source: str = ""):
        self.lines: List[str] = []
        self._occurrences: Dict[str, int] = {}
        self.reset(source)

    def reset(self, source: str) -> None:
        self.lines = source.split("\n")
        self._occurrences = {}

    def locate(self, signature: str, occurrence: int = 0) -> Optional[int]:
        needle = signature.strip()
        if not needle or occurrence < 0:
            return None
        seen = 0
        for idx, text in enumerate(self.lines):
            if needle in text:
                if seen == occurrence:
                    return idx + 1
                seen += 1
        return None

    def next_occurrence(self, key: str) -> int:
        count = self._occurrences.get(key, 0)
        self._occurrences[key] = count + 1
        return count

    def locate_next(self, key: str, *signatures: str) -> Optional[int]:
        """Consume one occurrence of ``key`` and try each signature with it."""
        count = self.next_occurrence(key)
        for sig in signatures:
            line = self.locate(sig, count)
            if line is not None:
                return line
        return None
