from __future__ import annotations

import os
import signal

import pytest

from storage_bench.cancellation import CancellationToken, install_signal_handlers
from storage_bench.errors import BenchmarkInterrupted


def test_token_cancels_once():
    token = CancellationToken()

    assert token.cancel(signal.SIGINT)
    assert not token.cancel(signal.SIGTERM)
    assert token.cancelled
    assert token.signum == signal.SIGINT


def test_raise_if_cancelled_carries_signal():
    token = CancellationToken()
    token.raise_if_cancelled()
    token.cancel(signal.SIGTERM)

    with pytest.raises(BenchmarkInterrupted) as excinfo:
        token.raise_if_cancelled()

    assert excinfo.value.interrupted
    assert excinfo.value.signal_name == "SIGTERM"


def test_wait_returns_early_when_cancelled():
    token = CancellationToken()
    assert not token.wait(0.01)
    token.cancel()
    assert token.wait(10)


def test_signal_handlers_set_token_and_restore():
    original = signal.getsignal(signal.SIGTERM)
    token = CancellationToken()
    restore = install_signal_handlers(token, signals=(signal.SIGTERM,))
    try:
        os.kill(os.getpid(), signal.SIGTERM)
        os.kill(os.getpid(), signal.SIGTERM)
    finally:
        restore()

    assert token.cancelled
    assert token.signum == signal.SIGTERM
    assert signal.getsignal(signal.SIGTERM) == original
