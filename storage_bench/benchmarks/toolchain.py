"""Prerequisite checks, the release build and host details for the report."""

from __future__ import annotations

import logging
import os
import platform
import shutil
import subprocess
from pathlib import Path
from typing import Dict, Iterable, Optional

from ..cancellation import CancellationToken
from ..commands import run_command
from ..errors import BuildFailure, PrerequisiteMissing

LOGGER = logging.getLogger("storage_bench.benchmark.toolchain")

INSTALL_HINTS: Dict[str, str] = {
    "aws": "install the AWS CLI: https://aws.amazon.com/cli/",
    "cargo": "install Rust: https://rustup.rs/",
}

BUILD_OUTPUT_TAIL_LINES = 20


def check_prerequisites(project_root: Path, tools: Iterable[str], require_manifest: bool = True) -> None:
    LOGGER.info("Checking prerequisites")
    if require_manifest and not (project_root / "Cargo.toml").is_file():
        raise PrerequisiteMissing(
            "Cargo.toml",
            f"{project_root} is not the server project root; run the harness from there",
        )
    for tool in tools:
        if shutil.which(tool) is None:
            raise PrerequisiteMissing(tool, INSTALL_HINTS.get(tool))
    LOGGER.info("All prerequisites satisfied")


def build_server(
    project_root: Path,
    binary_name: str,
    clean: bool = False,
    cancel_token: Optional[CancellationToken] = None,
    log_path: Optional[Path] = None,
) -> Path:
    if clean:
        LOGGER.info("Cleaning previous build artifacts")
        cleaned = run_command(
            ["cargo", "clean"], cwd=project_root, cancel_token=cancel_token, capture_output=True
        )
        if not cleaned.ok:
            for line in cleaned.output.splitlines()[-BUILD_OUTPUT_TAIL_LINES:]:
                LOGGER.error("  cargo: %s", line)
            raise BuildFailure(cleaned.returncode, log_path)

    LOGGER.info("Building %s in release mode", binary_name)
    result = run_command(
        ["cargo", "build", "--release", "--bin", binary_name],
        cwd=project_root,
        cancel_token=cancel_token,
        capture_output=True,
    )
    if not result.ok:
        for line in result.output.splitlines()[-BUILD_OUTPUT_TAIL_LINES:]:
            LOGGER.error("  cargo: %s", line)
        raise BuildFailure(result.returncode, log_path)

    binary = project_root / "target" / "release" / binary_name
    LOGGER.info("Built %s in %.1fs", binary, result.elapsed)
    return binary


def collect_system_info(tools: Iterable[str] = ("rustc", "aws")) -> Dict[str, str]:
    info = {
        "os": f"{platform.system()} {platform.release()}",
        "cpu": f"{os.cpu_count() or 'unknown'} cores",
        "python": platform.python_version(),
    }
    memory = _total_memory_gb()
    if memory is not None:
        info["memory"] = f"{memory}GB"
    for tool in tools:
        version = _tool_version(tool)
        if version:
            info[tool] = version
    return info


def _total_memory_gb() -> Optional[int]:
    try:
        pages = os.sysconf("SC_PHYS_PAGES")
        page_size = os.sysconf("SC_PAGE_SIZE")
    except (AttributeError, ValueError, OSError):
        return None
    if pages <= 0 or page_size <= 0:
        return None
    return pages * page_size // (1024 ** 3)


def _tool_version(tool: str) -> Optional[str]:
    if shutil.which(tool) is None:
        return None
    try:
        completed = subprocess.run(
            [tool, "--version"],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    output = (completed.stdout or completed.stderr).strip()
    return output.splitlines()[0] if output else None
