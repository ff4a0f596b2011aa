from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import List

LOGGER = logging.getLogger("storage_bench.benchmark.workspace")

CHUNK_SIZE = 1024 * 1024
BATCH_PAYLOAD_NAME = "concurrent_payload.bin"


def payload_key(iteration: int) -> str:
    return f"test_file_{iteration}.bin"


def batch_key(index: int) -> str:
    return f"concurrent_test_{index}.bin"


class ScratchSpace:
    """Volume directories and payload files that only live for one run."""

    def __init__(self, volumes_dir: Path, test_files_dir: Path, volume_count: int = 4) -> None:
        self._volumes_dir = volumes_dir
        self._test_files_dir = test_files_dir
        self._volume_count = volume_count

    @property
    def volumes_dir(self) -> Path:
        return self._volumes_dir

    @property
    def test_files_dir(self) -> Path:
        return self._test_files_dir

    def volume_paths(self) -> List[Path]:
        return [self._volumes_dir / f"test{idx}" for idx in range(1, self._volume_count + 1)]

    def provision_volumes(self) -> List[Path]:
        if self._volumes_dir.exists():
            LOGGER.info("Cleaning existing volumes in %s", self._volumes_dir)
            shutil.rmtree(self._volumes_dir)
        volumes = self.volume_paths()
        for volume in volumes:
            volume.mkdir(parents=True)
            volume.chmod(0o755)
        LOGGER.info("Created %d storage volumes under %s", len(volumes), self._volumes_dir)
        return volumes

    def payload_path(self, iteration: int) -> Path:
        return self._test_files_dir / payload_key(iteration)

    def download_path(self, iteration: int) -> Path:
        return self._test_files_dir / f"downloaded_{iteration}.bin"

    def batch_payload_path(self) -> Path:
        return self._test_files_dir / BATCH_PAYLOAD_NAME

    def create_payloads(self, iterations: int, size_bytes: int) -> List[Path]:
        self._test_files_dir.mkdir(parents=True, exist_ok=True)
        LOGGER.info("Creating %d test files of %d bytes", iterations, size_bytes)
        paths = [self.payload_path(i) for i in range(1, iterations + 1)]
        paths.append(self.batch_payload_path())
        for path in paths:
            _write_random_file(path, size_bytes)
        return paths

    def cleanup(self) -> None:
        for directory in (self._test_files_dir, self._volumes_dir):
            if directory.exists():
                LOGGER.info("Removing %s", directory)
                shutil.rmtree(directory, ignore_errors=True)


def _write_random_file(path: Path, size_bytes: int) -> None:
    remaining = size_bytes
    with open(path, "wb") as handle:
        while remaining > 0:
            chunk = min(remaining, CHUNK_SIZE)
            handle.write(os.urandom(chunk))
            remaining -= chunk
