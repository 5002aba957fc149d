"""Cooperative cancellation shared by one multi-turn agent run."""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable

from dandiset_assistant.exceptions import TurnCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """A one-shot cancel signal, safe to trigger from another thread.

    Network code registers close callbacks with ``on_cancel`` so that a
    cancel interrupts a blocking read; everything else polls
    ``raise_if_cancelled`` or waits on the token instead of sleeping.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], object]] = {}
        self._ids = itertools.count()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Trigger cancellation and run registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.debug("Cancel callback %r failed", callback, exc_info=True)

    def on_cancel(self, callback: Callable[[], object]) -> Callable[[], None]:
        """Register ``callback`` to run on cancel; returns an unregister function.

        If the token is already cancelled the callback runs immediately.
        """
        with self._lock:
            if not self._event.is_set():
                key = next(self._ids)
                self._callbacks[key] = callback

                def unregister() -> None:
                    with self._lock:
                        self._callbacks.pop(key, None)

                return unregister
        callback()
        return lambda: None

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TurnCancelledError()
