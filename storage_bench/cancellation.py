"""Cooperative cancellation shared by every blocking stage of a run."""

from __future__ import annotations

import logging
import signal
import threading
from typing import Callable, Dict, Iterable

from .errors import BenchmarkInterrupted

LOGGER = logging.getLogger("storage_bench.benchmark.cancel")

HANDLED_SIGNALS: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """One-shot flag set by a signal handler and polled by the control flow."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.signum: int | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, signum: int | None = None) -> bool:
        """Set the token. Returns False when it was already cancelled."""
        with self._lock:
            if self._event.is_set():
                return False
            self.signum = signum
            self._event.set()
            return True

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning True as soon as cancelled."""
        return self._event.wait(timeout=max(timeout, 0.0))

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise BenchmarkInterrupted(self.signum)


def install_signal_handlers(
    token: CancellationToken,
    signals: Iterable[int] = HANDLED_SIGNALS,
) -> Callable[[], None]:
    """Route termination signals into ``token``.

    Handlers never raise: the run notices the token at its next poll and
    unwinds through teardown. Returns a callable restoring the previous handlers.
    """

    previous: Dict[int, object] = {}

    def _handler(signum, _frame) -> None:
        if token.cancel(signum):
            LOGGER.warning("Received %s, cancelling benchmark", signal.Signals(signum).name)
        else:
            LOGGER.warning("Teardown already in progress; ignoring %s", signal.Signals(signum).name)

    for signum in signals:
        previous[signum] = signal.signal(signum, _handler)

    def restore() -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    return restore


__all__ = ["CancellationToken", "install_signal_handlers", "HANDLED_SIGNALS"]
