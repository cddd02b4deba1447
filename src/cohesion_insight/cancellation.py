"""Cooperative cancellation shared by every task of a run."""

import threading
from typing import Optional


class CancellationToken:
    """Signal observed by in-flight tasks.

    Tasks check ``cancelled`` before doing work and return what they have.
    Cancelling is idempotent and cannot be undone.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason
