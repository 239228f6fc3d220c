"""In-memory record of ads already seen, per search URL.

Nothing is persisted: a restart or a config reload starts from an empty
memory and the next cycle only seeds it again.
"""

from __future__ import annotations

import threading
from typing import Dict, Set


class SeenTracker:
    """Per-target sets of finn codes that were already picked up."""

    def __init__(self) -> None:
        self._seen: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def is_new(self, target: str, ad_id: str) -> bool:
        with self._lock:
            return ad_id not in self._seen.get(target, ())

    def record(self, target: str, ad_id: str) -> None:
        with self._lock:
            self._seen.setdefault(target, set()).add(ad_id)

    def reset(self) -> None:
        with self._lock:
            self._seen.clear()

    def count(self, target: str) -> int:
        with self._lock:
            return len(self._seen.get(target, ()))
