# src/tradedata_export/execution/cancellation.py

import threading
from typing import Optional


class CancellationToken:
    """
    Run-scoped cooperative cancellation flag.

    Jobs check it at their checkpoints; nothing is interrupted mid-call.
    """

    def __init__(self):
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "Cancelled by user") -> None:
        if not self._event.is_set():
            self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until cancelled or timeout; returns True if cancelled."""
        return self._event.wait(timeout)
