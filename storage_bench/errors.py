from __future__ import annotations

import signal
from pathlib import Path


class HarnessError(RuntimeError):
    """Raised when the benchmark cannot continue and must tear down."""

    log_path: Path | None = None
    interrupted = False


class PrerequisiteMissing(HarnessError):
    def __init__(self, tool: str, hint: str | None = None) -> None:
        message = f"required tool {tool!r} is not available"
        if hint:
            message = f"{message}: {hint}"
        super().__init__(message)
        self.tool = tool
        self.hint = hint


class BuildFailure(HarnessError):
    def __init__(self, returncode: int | None, log_path: Path | None = None) -> None:
        super().__init__(f"server build failed with exit code {returncode}")
        self.returncode = returncode
        self.log_path = log_path


class LaunchError(HarnessError):
    def __init__(self, message: str, log_path: Path | None = None) -> None:
        super().__init__(message)
        self.log_path = log_path


class ProcessDied(HarnessError):
    def __init__(self, returncode: int | None, log_path: Path | None = None) -> None:
        super().__init__(f"server process died unexpectedly (exit code {returncode})")
        self.returncode = returncode
        self.log_path = log_path


class StartupTimeout(HarnessError):
    def __init__(self, timeout: float, log_path: Path | None = None) -> None:
        super().__init__(f"server failed to become ready within {timeout:g}s")
        self.timeout = timeout
        self.log_path = log_path


class BenchmarkInterrupted(HarnessError):
    interrupted = True

    def __init__(self, signum: int | None = None) -> None:
        self.signum = signum
        super().__init__(f"benchmark interrupted by {self.signal_name}")

    @property
    def signal_name(self) -> str:
        if self.signum is None:
            return "cancellation request"
        try:
            return signal.Signals(self.signum).name
        except ValueError:
            return f"signal {self.signum}"


__all__ = [
    "HarnessError",
    "PrerequisiteMissing",
    "BuildFailure",
    "LaunchError",
    "ProcessDied",
    "StartupTimeout",
    "BenchmarkInterrupted",
]
