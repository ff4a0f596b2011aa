"""Run short-lived external commands without leaving children behind."""

from __future__ import annotations

import os
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .cancellation import CancellationToken
from .errors import BenchmarkInterrupted

POLL_INTERVAL_S = 0.1
TERMINATE_TIMEOUT_S = 5.0


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: Optional[int]
    elapsed: float
    output: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.returncode == 0


def run_command(
    argv: List[str],
    *,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
    cancel_token: Optional[CancellationToken] = None,
    capture_output: bool = False,
) -> CommandResult:
    """Run ``argv`` to completion while watching ``cancel_token``.

    Output is spooled to a temporary file rather than a pipe so a chatty
    command cannot block on a full pipe while we poll it. A cancelled token
    terminates the child and raises ``BenchmarkInterrupted``; an expired
    ``timeout`` terminates it and is reported through ``timed_out``.
    """
    full_env = None
    if env is not None:
        full_env = os.environ.copy()
        full_env.update(env)

    with tempfile.TemporaryFile() as spool:
        sink = spool if capture_output else subprocess.DEVNULL
        started = time.perf_counter()
        proc = subprocess.Popen(
            argv,
            cwd=cwd,
            env=full_env,
            stdin=subprocess.DEVNULL,
            stdout=sink,
            stderr=subprocess.STDOUT if capture_output else subprocess.DEVNULL,
        )
        deadline = started + timeout if timeout is not None else None
        timed_out = False
        try:
            while True:
                try:
                    proc.wait(timeout=POLL_INTERVAL_S)
                    break
                except subprocess.TimeoutExpired:
                    pass
                if cancel_token is not None and cancel_token.cancelled:
                    raise BenchmarkInterrupted(cancel_token.signum)
                if deadline is not None and time.perf_counter() >= deadline:
                    timed_out = True
                    break
        finally:
            if proc.poll() is None:
                terminate_process(proc)
        elapsed = time.perf_counter() - started

        output = ""
        if capture_output:
            spool.seek(0)
            output = spool.read().decode("utf-8", errors="replace")

    return CommandResult(
        argv=tuple(argv),
        returncode=None if timed_out else proc.returncode,
        elapsed=elapsed,
        output=output,
        timed_out=timed_out,
    )


def terminate_process(proc: subprocess.Popen, timeout: float = TERMINATE_TIMEOUT_S) -> None:
    if proc.poll() is not None:
        return
    proc.terminate()
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


__all__ = ["CommandResult", "run_command", "terminate_process"]
