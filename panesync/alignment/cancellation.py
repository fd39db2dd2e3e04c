"""
Cooperative cancellation for alignment work running in worker threads.
"""

import threading
from typing import Optional

from ..errors import AlignmentCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag.

    Cancelled on supersession (newer content), pane removal or session
    teardown; long-running loops poll it between units of work.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AlignmentCancelledError(self.reason)

    def __repr__(self):
        state = f"cancelled: {self.reason}" if self.is_cancelled() else "active"
        return f"<CancellationToken {state}>"
