from __future__ import annotations

import contextlib
import enum
import logging
import os
import signal
import socket
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Callable, List, Optional
from urllib.parse import urlsplit

from ..cancellation import CancellationToken
from ..errors import BenchmarkInterrupted, LaunchError, ProcessDied, StartupTimeout

LOGGER = logging.getLogger("storage_bench.benchmark.server")

PROBE_TIMEOUT_S = 2.0


class ProcessState(enum.IntEnum):
    NOT_STARTED = 0
    STARTING = 1
    READY = 2
    FAILED = 3
    STOPPED = 4


@dataclass
class ServerProcess:
    pid: int
    address: str
    endpoint: str
    log_path: Path
    state: ProcessState = ProcessState.NOT_STARTED
    returncode: Optional[int] = None
    _popen: Optional[subprocess.Popen] = field(default=None, repr=False, compare=False)
    _log_handle: Optional[IO[str]] = field(default=None, repr=False, compare=False)

    def advance(self, new_state: ProcessState) -> None:
        """Move forward through the lifecycle; terminal states never regress."""
        if self.state is ProcessState.STOPPED:
            return
        if self.state is ProcessState.FAILED and new_state is not ProcessState.STOPPED:
            return
        if new_state < self.state:
            return
        self.state = new_state

    def is_alive(self) -> bool:
        if self._popen is None:
            return False
        if self._popen.poll() is None:
            return True
        self.returncode = self._popen.returncode
        return False


def endpoint_target(endpoint: str) -> tuple[str, int]:
    parts = urlsplit(endpoint if "://" in endpoint else f"http://{endpoint}")
    host = parts.hostname or "localhost"
    port = parts.port or (443 if parts.scheme == "https" else 80)
    return host, port


def tcp_probe(endpoint: str, timeout: float = PROBE_TIMEOUT_S) -> bool:
    host, port = endpoint_target(endpoint)
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


class ProcessSupervisor:
    """Own the lifecycle of the storage server launched for a benchmark run."""

    def __init__(
        self,
        poll_interval: float = 2.0,
        readiness_grace: float = 5.0,
        stop_poll_interval: float = 1.0,
        stop_poll_attempts: int = 10,
        cancel_token: Optional[CancellationToken] = None,
        probe: Callable[[str], bool] = tcp_probe,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._poll_interval = poll_interval
        self._readiness_grace = readiness_grace
        self._stop_poll_interval = stop_poll_interval
        self._stop_poll_attempts = stop_poll_attempts
        self._cancel_token = cancel_token or CancellationToken()
        self._probe = probe
        self._clock = clock
        self._process: Optional[ServerProcess] = None

    @property
    def process(self) -> Optional[ServerProcess]:
        return self._process

    def start(
        self,
        binary_path: Path,
        args: List[str],
        log_path: Path,
        address: str = "",
        endpoint: str = "",
    ) -> ServerProcess:
        if self._process is not None and self._process.state is not ProcessState.STOPPED:
            raise LaunchError(
                f"already supervising server PID {self._process.pid}", self._process.log_path
            )
        if not binary_path.is_file():
            raise LaunchError(f"server binary not found: {binary_path}", log_path)
        if not os.access(binary_path, os.X_OK):
            raise LaunchError(f"server binary is not executable: {binary_path}", log_path)

        argv = [str(binary_path), *args]
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_handle = open(log_path, "w", encoding="utf-8")
        log_handle.write(f"[launcher] starting server: {' '.join(argv)}\n")
        log_handle.flush()
        try:
            popen = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=log_handle,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as exc:
            log_handle.close()
            raise LaunchError(f"failed to launch {binary_path}: {exc}", log_path) from exc

        process = ServerProcess(
            pid=popen.pid,
            address=address,
            endpoint=endpoint,
            log_path=log_path,
            _popen=popen,
            _log_handle=log_handle,
        )
        process.advance(ProcessState.STARTING)
        self._process = process
        LOGGER.info("Server started with PID %d (log: %s)", popen.pid, log_path)
        return process

    def await_ready(self, process: ServerProcess, endpoint: str, timeout: float) -> ServerProcess:
        LOGGER.info("Waiting for server at %s (timeout: %gs)", endpoint, timeout)
        deadline = self._clock() + timeout
        while True:
            if not process.is_alive():
                process.advance(ProcessState.FAILED)
                LOGGER.error("Server process died unexpectedly; check %s", process.log_path)
                raise ProcessDied(process.returncode, process.log_path)

            if self._probe(endpoint):
                LOGGER.info("Server accepts connections; waiting %gs for warm-up", self._readiness_grace)
                self._pause(self._readiness_grace)
                if not process.is_alive():
                    process.advance(ProcessState.FAILED)
                    LOGGER.error("Server exited during warm-up; check %s", process.log_path)
                    raise ProcessDied(process.returncode, process.log_path)
                process.advance(ProcessState.READY)
                LOGGER.info("Server is ready")
                return process

            if self._clock() >= deadline:
                process.advance(ProcessState.FAILED)
                LOGGER.error("Server failed to start within %gs; check %s", timeout, process.log_path)
                raise StartupTimeout(timeout, process.log_path)

            LOGGER.debug("Server not reachable yet, retrying in %gs", self._poll_interval)
            self._pause(self._poll_interval)

    def stop(self, process: Optional[ServerProcess] = None) -> None:
        process = process or self._process
        if process is None or process.state is ProcessState.STOPPED:
            return

        popen = process._popen
        if popen is not None and popen.poll() is None:
            LOGGER.info("Stopping server (PID %d)", process.pid)
            with contextlib.suppress(ProcessLookupError):
                popen.send_signal(signal.SIGTERM)
            for _ in range(self._stop_poll_attempts):
                if popen.poll() is not None:
                    break
                time.sleep(self._stop_poll_interval)
            if popen.poll() is None:
                LOGGER.warning("Server ignored SIGTERM; force killing PID %d", process.pid)
                with contextlib.suppress(ProcessLookupError):
                    popen.kill()
            popen.wait()
        if popen is not None:
            process.returncode = popen.returncode

        if process._log_handle is not None:
            process._log_handle.close()
            process._log_handle = None
        process.advance(ProcessState.STOPPED)
        LOGGER.info("Server stopped")

    def _pause(self, seconds: float) -> None:
        if self._cancel_token.wait(seconds):
            raise BenchmarkInterrupted(self._cancel_token.signum)

    def __enter__(self) -> "ProcessSupervisor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


__all__ = [
    "ProcessState",
    "ServerProcess",
    "ProcessSupervisor",
    "tcp_probe",
    "endpoint_target",
]
