"""Cancellation and deadline handling for blocking calls."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, List, Optional, TypeVar

from .errors import Cancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

POLL_INTERVAL_SECONDS = 0.05


class CancellationSignal:
    """Cancellation flag with an optional deadline.

    Blocking calls made through :meth:`call` run on a daemon worker thread so
    the caller can stop waiting as soon as the signal fires. The abandoned
    worker is not interrupted; its result is discarded.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._deadline = time.monotonic() + timeout if timeout else None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("deadline exceeded")
            return True
        return False

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self, stage: str) -> None:
        if self.cancelled:
            raise Cancelled(f"{stage} aborted: {self._reason}")

    def call(self, stage: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn`` and return its result unless the signal fires first."""

        self.raise_if_cancelled(stage)

        done = threading.Event()
        result: List[Any] = []
        error: List[BaseException] = []

        def _run() -> None:
            try:
                result.append(fn(*args, **kwargs))
            except BaseException as exc:  # noqa: BLE001 - re-raised on the caller thread
                error.append(exc)
            finally:
                done.set()

        worker = threading.Thread(target=_run, name=f"refresh-{stage}", daemon=True)
        worker.start()

        while not done.wait(POLL_INTERVAL_SECONDS):
            if self.cancelled:
                logger.warning("Abandoning in-flight %s call: %s", stage, self._reason)
                raise Cancelled(f"{stage} aborted: {self._reason}")

        if error:
            raise error[0]
        return result[0]
