"""
File Access Record

Remembers which files were read during a session so edits can require a
prior read.
"""

import threading
from typing import List, Set


class AccessRecord:
    """Thread-safe set of absolute paths read in one session."""

    def __init__(self) -> None:
        self._paths: Set[str] = set()
        self._lock = threading.Lock()

    def record(self, path: str) -> None:
        with self._lock:
            self._paths.add(path)

    def has_been_read(self, path: str) -> bool:
        with self._lock:
            return path in self._paths

    def clear(self) -> None:
        with self._lock:
            self._paths.clear()

    def snapshot(self) -> List[str]:
        """Sorted copy of the recorded paths."""
        with self._lock:
            return sorted(self._paths)

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.has_been_read(path)
