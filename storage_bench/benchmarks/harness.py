from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import Callable, Dict, Optional

from ..cancellation import CancellationToken
from ..client import ObjectStoreClient
from .collector import build_dataframe, flatten, write_outcomes_csv
from .config import BenchmarkConfig, OperationKind
from .load import ConcurrentBatchRunner, TimedOperationSampler
from .metrics import BatchResult, OperationOutcome, reduce_outcomes
from .report import RunReport, build_report, write_manifest
from .server_control import ProcessSupervisor
from .toolchain import build_server, check_prerequisites, collect_system_info
from .workspace import ScratchSpace, batch_key, payload_key

LOGGER = logging.getLogger("storage_bench.benchmark")

OUTCOMES_FILENAME = "outcomes.csv"
MANIFEST_FILENAME = "benchmark_manifest.json"

Outcomes = Dict[OperationKind, tuple[OperationOutcome, ...]]


class BenchmarkHarness:
    """Drive one complete benchmark run against a freshly launched server.

    The server and the scratch space are released through a single exit stack,
    so they are torn down exactly once whether the run completes, fails during
    startup or is cancelled.
    """

    def __init__(
        self,
        config: BenchmarkConfig,
        cancel_token: Optional[CancellationToken] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        client: Optional[ObjectStoreClient] = None,
        scratch: Optional[ScratchSpace] = None,
        prerequisites: Callable[..., None] = check_prerequisites,
        builder: Callable[..., Path] = build_server,
        system_info: Callable[[], Dict[str, str]] = collect_system_info,
    ) -> None:
        self._config = config
        self._token = cancel_token or CancellationToken()
        self._supervisor = supervisor or ProcessSupervisor(
            poll_interval=config.poll_interval,
            readiness_grace=config.readiness_grace,
            stop_poll_interval=config.stop_poll_interval,
            stop_poll_attempts=config.stop_poll_attempts,
            cancel_token=self._token,
        )
        self._client = client or ObjectStoreClient(
            endpoint=config.endpoint,
            credentials=config.credentials,
            bucket=config.bucket_name,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            cancel_token=self._token,
        )
        self._scratch = scratch or ScratchSpace(
            volumes_dir=config.resolved_volumes_dir(),
            test_files_dir=config.test_files_dir,
            volume_count=config.volume_count,
        )
        self._prerequisites = prerequisites
        self._builder = builder
        self._system_info = system_info

    def run(self) -> RunReport:
        config = self._config
        tools = ["aws"] if config.skip_build else ["aws", "cargo"]
        self._prerequisites(config.project_root, tools, require_manifest=not config.skip_build)

        system_info = self._system_info()
        for key, value in system_info.items():
            LOGGER.info("System %s: %s", key, value)

        with contextlib.ExitStack() as teardown:
            teardown.callback(self._scratch.cleanup)
            teardown.enter_context(self._supervisor)
            teardown.callback(LOGGER.info, "Cleaning up all resources")

            binary = self._prepare_binary()
            self._token.raise_if_cancelled()
            volumes = self._scratch.provision_volumes()

            process = self._supervisor.start(
                binary,
                ["--address", config.address, *(str(volume) for volume in volumes)],
                config.resolved_server_log(),
                address=config.address,
                endpoint=config.endpoint,
            )
            self._supervisor.await_ready(process, config.endpoint, config.startup_timeout)

            self._provision_test_data()
            outcomes, batch = self._run_workload()
            LOGGER.info("All benchmarks completed")

        self._token.raise_if_cancelled()
        stats = {kind: reduce_outcomes(items, kind) for kind, items in outcomes.items()}
        report = build_report(config, stats, batch, system_info)
        if config.output_dir is not None:
            self._write_artifacts(report, outcomes, config.output_dir)
            self._token.raise_if_cancelled()
        return report

    def _prepare_binary(self) -> Path:
        config = self._config
        if config.skip_build:
            binary = config.resolved_server_binary()
            LOGGER.info("Using prebuilt server binary %s", binary)
            return binary
        return self._builder(
            config.project_root,
            config.server_binary_name,
            clean=config.clean_build,
            cancel_token=self._token,
            log_path=config.resolved_benchmark_log(),
        )

    def _provision_test_data(self) -> None:
        config = self._config
        created = self._client.create_bucket()
        if created.success:
            LOGGER.info("Bucket %r created", config.bucket_name)
        else:
            LOGGER.warning(
                "Bucket %r already exists or creation failed (%s)", config.bucket_name, created.reason
            )
        self._scratch.create_payloads(config.iterations, config.file_size_bytes)

    def _run_workload(self) -> tuple[Outcomes, BatchResult]:
        config = self._config
        client = self._client
        scratch = self._scratch
        sampler = TimedOperationSampler(config.operation_pause, self._token)
        batch_runner = ConcurrentBatchRunner(self._token)
        n = config.iterations

        outcomes: Outcomes = {}
        outcomes[OperationKind.PUT] = sampler.run(
            OperationKind.PUT,
            lambda i: client.put_object(payload_key(i), scratch.payload_path(i)),
            n,
        )
        outcomes[OperationKind.GET] = sampler.run(
            OperationKind.GET,
            lambda i: client.get_object(payload_key(i), scratch.download_path(i)),
            n,
        )
        self._token.raise_if_cancelled()
        batch = batch_runner.run(
            lambda i: client.copy_file(scratch.batch_payload_path(), batch_key(i)),
            config.concurrency,
            config.file_size_bytes,
        )
        outcomes[OperationKind.LIST] = sampler.run(
            OperationKind.LIST,
            lambda _i: client.list_objects(),
            n,
        )
        outcomes[OperationKind.DELETE] = sampler.run(
            OperationKind.DELETE,
            lambda i: client.delete_object(payload_key(i)),
            n,
        )
        return outcomes, batch

    def _write_artifacts(self, report: RunReport, outcomes: Outcomes, output_dir: Path) -> None:
        df = build_dataframe(flatten(outcomes))
        write_outcomes_csv(df, output_dir / OUTCOMES_FILENAME)
        write_manifest(report, output_dir / MANIFEST_FILENAME)
        if not self._config.skip_charts:
            # Imported lazily so runs without --output-dir never load matplotlib.
            from .charts import render_run_charts

            render_run_charts(df, report, output_dir)
