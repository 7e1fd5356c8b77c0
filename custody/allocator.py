"""Evidence id allocation."""

from __future__ import annotations


class IdAllocator:
    """
    Issues strictly increasing evidence ids starting at 1.

    The counter only moves forward. Seeding with a previously issued id
    (when reloading persisted state) continues after it, so ids are never
    reissued.
    """

    def __init__(self, last_issued: int = 0):
        if last_issued < 0:
            raise ValueError(f"last_issued must be >= 0, got {last_issued}")
        self._last = last_issued

    @property
    def current(self) -> int:
        """Last id handed out (0 if none)."""
        return self._last

    def next(self) -> int:
        self._last += 1
        return self._last

    def advance_to(self, last_issued: int) -> None:
        """Skip forward so the next id is greater than `last_issued`."""
        if last_issued > self._last:
            self._last = last_issued
