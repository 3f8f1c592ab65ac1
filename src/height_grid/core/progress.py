"""
Progress reporting and cooperative cancellation.

Long-running operations report a monotonically increasing step count
to an optional callback. The callback returns False to request
cancellation; it is only consulted at checkpoints, never in the middle
of an inner loop.
"""

from __future__ import annotations

from typing import Callable, Optional

ProgressCallback = Callable[[int, int], bool]


class ProgressReporter:
    """
    Forward step counts to an optional progress callback.

    Args:
        callback: Called as ``callback(steps_done, total)``; returning
            False asks the running operation to stop
        total: Number of steps the operation will perform
    """

    def __init__(self, callback: Optional[ProgressCallback], total: int):
        self.callback = callback
        self.total = max(int(total), 0)
        self.done = 0
        self.cancelled = False

    def step(self, count: int = 1) -> bool:
        """Advance by ``count`` steps. Returns False once cancelled."""
        self.done = min(self.done + count, self.total)
        if self.callback is not None and not self.cancelled:
            if self.callback(self.done, self.total) is False:
                self.cancelled = True
        return not self.cancelled
