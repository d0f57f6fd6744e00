"""
Reading Store
=============

Where accepted readings live. In memory, for the lifetime of the process.

The store is an object (not module globals) so the app can hand it to the
handlers that need it and tests can start every case with a fresh one.
Swapping in a real database means writing another class with these methods.

Invariant: latest is always the last reading appended, or None if nothing
was ever appended.
"""

import logging
from typing import Optional

from airsense.models import Reading

logger = logging.getLogger(__name__)


class ReadingStore:
    """Append-only, insertion-ordered history plus the latest reading."""

    def __init__(self):
        self._history: list[Reading] = []
        self._latest: Optional[Reading] = None

    @property
    def latest(self) -> Optional[Reading]:
        return self._latest

    def append(self, reading: Reading) -> None:
        self._history.append(reading)
        self._latest = reading
        logger.debug(f"Stored reading #{len(self._history)} ({reading.source.value})")

    def history(self) -> list[Reading]:
        """Every reading, oldest first. A copy - callers can't mutate the store."""
        return list(self._history)

    def recent(self, count: int) -> list[Reading]:
        """The last `count` readings, oldest first."""
        if count <= 0:
            return []
        return self._history[-count:]

    def __len__(self) -> int:
        return len(self._history)
