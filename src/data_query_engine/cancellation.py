"""Caller-supplied cancellation for query pipelines.

The engine imposes no timeout of its own. A caller that wants to abort a
call hands a CancellationToken to ``QueryEngine.execute``; the dispatcher
checks it between steps and backend adapters register an abort callback
for the duration of each remote call.

Example:
    >>> token = CancellationToken()
    >>> threading.Timer(5.0, token.cancel).start()
    >>> engine.execute("SELECT * FROM orders", cancel_token=token)
"""
import logging
import threading
from contextlib import contextmanager, nullcontext
from typing import Callable, Iterator

from .errors import QueryCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe, one-shot cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Mark the token cancelled and fire registered abort callbacks."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning("Cancellation callback failed: %s", e)

    def raise_if_cancelled(self, stage: str) -> None:
        """Raise QueryCancelledError if cancel() has been called."""
        if self._event.is_set():
            raise QueryCancelledError(
                f"Query cancelled before {stage}",
                details={"stage": stage}
            )

    @contextmanager
    def on_cancel(self, callback: Callable[[], None]) -> Iterator[None]:
        """Run ``callback`` if the token is cancelled while the block runs."""
        with self._lock:
            already = self._event.is_set()
            if not already:
                self._callbacks.append(callback)
        if already:
            callback()
        try:
            yield
        finally:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)


def check(token: "CancellationToken | None", stage: str) -> None:
    """``raise_if_cancelled`` that tolerates a missing token."""
    if token is not None:
        token.raise_if_cancelled(stage)


def abort_on_cancel(token: "CancellationToken | None", callback: Callable[[], None]):
    """``on_cancel`` that tolerates a missing token."""
    if token is None:
        return nullcontext()
    return token.on_cancel(callback)
