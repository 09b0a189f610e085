"""Completion signal for a response body handed to the client."""

from __future__ import annotations

from concurrent.futures import Future
from threading import Lock
from typing import Optional


class DeliveryReceipt:
    """Resolved exactly once: acknowledged on delivery, failed on a send error."""

    def __init__(self) -> None:
        self._future: Future[None] = Future()
        self._lock = Lock()

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def acknowledge(self) -> None:
        with self._lock:
            self._ensure_unresolved()
            self._future.set_result(None)

    def fail(self, error: BaseException) -> None:
        with self._lock:
            self._ensure_unresolved()
            self._future.set_exception(error)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until resolved; True when delivery was acknowledged."""

        return self._future.exception(timeout=timeout) is None

    @property
    def error(self) -> Optional[BaseException]:
        if not self._future.done():
            return None
        return self._future.exception()

    def _ensure_unresolved(self) -> None:
        if self._future.done():
            raise RuntimeError("Delivery receipt has already been resolved.")
