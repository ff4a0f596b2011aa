from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .cancellation import CancellationToken
from .commands import CommandResult, run_command

LOGGER = logging.getLogger("storage_bench.client")

DEFAULT_CLI = "aws"
CONNECT_TIMEOUT_S_DEFAULT = 30
READ_TIMEOUT_S_DEFAULT = 60


@dataclass(frozen=True)
class Credentials:
    access_key: str
    secret_key: str
    region: str = "us-east-1"

    def as_environment(self) -> Dict[str, str]:
        return {
            "AWS_ACCESS_KEY_ID": self.access_key,
            "AWS_SECRET_ACCESS_KEY": self.secret_key,
            "AWS_DEFAULT_REGION": self.region,
        }

    def __repr__(self) -> str:
        return f"Credentials(access_key={self.access_key!r}, secret_key='***', region={self.region!r})"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a single object operation, independent of how it was executed."""

    success: bool
    elapsed: float
    reason: Optional[str] = None

    @classmethod
    def succeeded(cls, elapsed: float) -> "OperationResult":
        return cls(success=True, elapsed=elapsed)

    @classmethod
    def failed(cls, elapsed: float, reason: str) -> "OperationResult":
        return cls(success=False, elapsed=elapsed, reason=reason)


class ObjectStoreClient:
    """Issue S3 object operations through the ``aws`` command-line client.

    Every call spawns one CLI process and reports an ``OperationResult``;
    exit codes never leak past this class.
    """

    def __init__(
        self,
        endpoint: str,
        credentials: Credentials,
        bucket: str,
        cli: str = DEFAULT_CLI,
        connect_timeout: int = CONNECT_TIMEOUT_S_DEFAULT,
        read_timeout: int = READ_TIMEOUT_S_DEFAULT,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        self._endpoint = endpoint
        self._credentials = credentials
        self._bucket = bucket
        self._cli = cli
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout
        self._cancel_token = cancel_token

    @property
    def bucket(self) -> str:
        return self._bucket

    def create_bucket(self) -> OperationResult:
        return self._s3api("create-bucket", "--bucket", self._bucket)

    def put_object(self, key: str, body: Path) -> OperationResult:
        return self._s3api(
            "put-object",
            "--bucket",
            self._bucket,
            "--key",
            key,
            "--body",
            str(body),
        )

    def get_object(self, key: str, destination: Path) -> OperationResult:
        if destination.exists():
            destination.unlink()
        result = self._s3api(
            "get-object",
            "--bucket",
            self._bucket,
            "--key",
            key,
            outfile=str(destination),
        )
        if result.success:
            destination.unlink(missing_ok=True)
        return result

    def list_objects(self) -> OperationResult:
        return self._s3api("list-objects-v2", "--bucket", self._bucket)

    def delete_object(self, key: str) -> OperationResult:
        return self._s3api("delete-object", "--bucket", self._bucket, "--key", key)

    def copy_file(self, source: Path, key: str) -> OperationResult:
        argv = [
            self._cli,
            "s3",
            "cp",
            str(source),
            f"s3://{self._bucket}/{key}",
            "--endpoint-url",
            self._endpoint,
            "--only-show-errors",
        ]
        return self._execute(argv, operation="cp")

    def _s3api(self, operation: str, *params: str, outfile: Optional[str] = None) -> OperationResult:
        argv: List[str] = [
            self._cli,
            "s3api",
            operation,
            *params,
            "--endpoint-url",
            self._endpoint,
            "--cli-connect-timeout",
            str(self._connect_timeout),
            "--cli-read-timeout",
            str(self._read_timeout),
            "--no-cli-pager",
        ]
        # get-object takes its output file as a trailing positional argument.
        if outfile is not None:
            argv.append(outfile)
        return self._execute(argv, operation=operation)

    def _execute(self, argv: List[str], operation: str) -> OperationResult:
        env = self._credentials.as_environment()
        env["AWS_CLI_AUTO_PROMPT"] = "off"
        try:
            completed = run_command(
                argv,
                env=env,
                timeout=float(self._connect_timeout + self._read_timeout),
                cancel_token=self._cancel_token,
                capture_output=True,
            )
        except OSError as exc:
            LOGGER.debug("%s could not be launched: %s", operation, exc)
            return OperationResult.failed(0.0, f"failed to launch {self._cli}: {exc}")
        return _to_result(operation, completed)


def _to_result(operation: str, completed: CommandResult) -> OperationResult:
    if completed.ok:
        return OperationResult.succeeded(completed.elapsed)
    if completed.timed_out:
        reason = f"{operation} timed out after {completed.elapsed:.1f}s"
    else:
        detail = completed.output.strip().splitlines()
        reason = f"{operation} exited with code {completed.returncode}"
        if detail:
            reason = f"{reason}: {detail[-1]}"
    LOGGER.debug(reason)
    return OperationResult.failed(completed.elapsed, reason)


__all__ = ["Credentials", "OperationResult", "ObjectStoreClient"]
