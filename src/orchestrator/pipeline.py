"""PipelineOrchestrator - builds and smoke-tests components in one run."""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Optional, Sequence

from src.backend import DockerCLIBackend, ExecutionBackend, ServiceHandle
from src.cache import DependencyCache, InMemoryDependencyCache
from src.pipeline import (
    BuildDescriptor,
    BuildError,
    BuiltArtifact,
    EnvironmentUnavailableError,
    FailureKind,
    ImagePullError,
    PipelineCancelledError,
    PipelineReport,
    SmokeTestError,
    TestResult,
    validate_descriptors,
)
from src.probe import ProbeOutcome, ReadinessProbe

from .config import OrchestratorConfig

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Orchestrates the build -> smoke test pipeline for a set of components.

    Components are independent: each one is built and then tested on its
    own worker, and one component's failure never stops the others. Every
    component ends up in the report, in declaration order.

    Only three things escape run():
    - PipelineValidationError: invalid input, raised before any build
    - EnvironmentUnavailableError: the execution backend is unreachable
    - PipelineCancelledError: cancel_event was set; partial results dropped

    Example:
        report = PipelineOrchestrator().run(descriptors, pipeline_name="smoke")
        print(f"Success: {report.success}")
    """

    # How often the coordinating thread checks for cancellation
    POLL_INTERVAL = 0.1

    def __init__(
        self,
        backend: Optional[ExecutionBackend] = None,
        probe: Optional[ReadinessProbe] = None,
        config: Optional[OrchestratorConfig] = None,
        cache: Optional[DependencyCache] = None,
    ):
        self._backend = backend
        self._probe = probe
        self._config = config or OrchestratorConfig()
        self._cache = cache or InMemoryDependencyCache()

    def _get_backend(self) -> ExecutionBackend:
        if self._backend is None:
            self._backend = DockerCLIBackend()
        return self._backend

    def _get_probe(self) -> ReadinessProbe:
        if self._probe is None:
            self._probe = ReadinessProbe(interval=self._config.probe_interval)
        return self._probe

    @staticmethod
    def _failed(
        name: str,
        failure: FailureKind,
        error: str,
        output: str,
        start: float,
    ) -> TestResult:
        logger.warning("Component '%s' failed %s: %s", name, failure.value, error)
        return TestResult(
            component=name,
            passed=False,
            output=output,
            error=error,
            failure=failure,
            duration_seconds=round(time.monotonic() - start, 2),
        )

    @staticmethod
    def _passed(name: str, output: str, start: float) -> TestResult:
        duration = round(time.monotonic() - start, 2)
        logger.info("Component '%s' passed (%ss)", name, duration)
        return TestResult(
            component=name,
            passed=True,
            output=output,
            duration_seconds=duration,
        )

    def run(
        self,
        descriptors: Sequence[BuildDescriptor],
        pipeline_name: str = "pipeline",
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineReport:
        """Build and smoke-test every component.

        Args:
            descriptors: Components in declaration order.
            pipeline_name: Name recorded in the report.
            cancel_event: Set externally to abandon the run.

        Returns:
            PipelineReport with one TestResult per descriptor, in order.

        Raises:
            DuplicateComponentError: Two descriptors share a name.
            EnvironmentUnavailableError: The backend cannot be reached.
            PipelineCancelledError: cancel_event was set before completion.
        """
        descriptors = list(descriptors)
        validate_descriptors(descriptors)
        cancel_event = cancel_event or threading.Event()
        started_at = datetime.now(timezone.utc)

        if cancel_event.is_set():
            raise PipelineCancelledError()

        backend = self._get_backend()
        backend.ping()
        logger.info(
            "Running pipeline '%s' with %d component(s) on %s",
            pipeline_name,
            len(descriptors),
            backend.backend_name,
        )

        results = self._run_all(descriptors, cancel_event)

        report = PipelineReport(
            pipeline=pipeline_name,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            results=tuple(results),
        )
        logger.info(
            "Pipeline '%s' finished: %d passed, %d failed",
            pipeline_name,
            len(report.results) - len(report.failures),
            len(report.failures),
        )
        cached = sorted(self._cache.keys())
        logger.info(
            "Dependency cache holds %d key(s): %s", len(cached), ", ".join(cached) or "none"
        )
        return report

    def _run_all(
        self, descriptors: list[BuildDescriptor], cancel_event: threading.Event
    ) -> list[TestResult]:
        """Run every component on the worker pool, slotting results by index."""
        slots: list[Optional[TestResult]] = [None] * len(descriptors)
        if not descriptors:
            return []

        # Set on cancellation or a fatal error so in-flight work stops early
        abort = threading.Event()
        max_workers = self._config.max_workers or len(descriptors)
        executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="pipeline"
        )
        futures: dict[Future, int] = {
            executor.submit(self._run_component, descriptor, abort): index
            for index, descriptor in enumerate(descriptors)
        }

        try:
            pending = set(futures)
            while True:
                if cancel_event.is_set():
                    logger.warning("Cancellation requested, abandoning pipeline run")
                    raise PipelineCancelledError()
                if not pending:
                    break
                done, pending = wait(
                    pending, timeout=self.POLL_INTERVAL, return_when=FIRST_COMPLETED
                )
                for future in done:
                    # Re-raises EnvironmentUnavailableError from the worker
                    slots[futures[future]] = future.result()
        except BaseException:
            abort.set()
            executor.shutdown(wait=False, cancel_futures=True)
            raise

        executor.shutdown(wait=True)
        return [result for result in slots if result is not None]

    def _run_component(
        self, descriptor: BuildDescriptor, abort: threading.Event
    ) -> TestResult:
        """Build then test one component. Runs on a worker thread."""
        name = descriptor.name
        start = time.monotonic()

        try:
            artifact = self._build(descriptor)
        except EnvironmentUnavailableError:
            raise
        except BuildError as e:
            return self._failed(name, FailureKind.BUILD, str(e), e.output, start)
        except Exception as e:
            logger.exception("Build of '%s' failed unexpectedly", name)
            return self._failed(name, FailureKind.BUILD, str(e), "", start)

        if abort.is_set():
            raise PipelineCancelledError()

        try:
            if descriptor.is_service:
                return self._test_service(artifact, abort, start)
            return self._test_once(artifact, start)
        except (EnvironmentUnavailableError, PipelineCancelledError):
            raise
        except SmokeTestError as e:
            return self._failed(name, FailureKind.TEST, str(e), e.output, start)
        except Exception as e:
            logger.exception("Smoke test of '%s' failed unexpectedly", name)
            return self._failed(name, FailureKind.TEST, str(e), "", start)

    def _build(self, descriptor: BuildDescriptor) -> BuiltArtifact:
        backend = self._get_backend()
        image = descriptor.image

        # Base images are pulled once per key no matter how many components share them
        try:
            self._cache.get_or_create(
                f"image:{image}",
                lambda: backend.pull_image(image, timeout=self._config.pull_timeout),
            )
        except ImagePullError as e:
            raise BuildError(descriptor.name, str(e), e.output) from e

        artifact = backend.build(descriptor, timeout=self._config.build_timeout)
        logger.info("Built '%s' as %s", descriptor.name, artifact.image_ref)
        return artifact

    def _test_once(self, artifact: BuiltArtifact, start: float) -> TestResult:
        """Run the component's smoke command to completion."""
        timeout = self._config.test_timeout
        command = artifact.descriptor.smoke_command
        result = self._get_backend().run_once(artifact, command, timeout=timeout)

        if result.succeeded:
            return self._passed(artifact.name, result.output, start)
        if result.timed_out:
            # Without a readiness probe a timeout cannot be told apart from a hang
            error = f"Smoke test did not finish within {timeout}s"
        else:
            error = f"Smoke test exited with code {result.exit_code}"
        return self._failed(artifact.name, FailureKind.TEST, error, result.output, start)

    def _test_service(
        self, artifact: BuiltArtifact, abort: threading.Event, start: float
    ) -> TestResult:
        """Start the component as a service and probe it for readiness."""
        backend = self._get_backend()
        health = artifact.descriptor.health_check
        handle = backend.start_service(
            artifact,
            host_port=self._config.host_port_for(artifact.name),
            timeout=self._config.test_timeout,
        )

        try:
            url = self._health_url(handle, health.path)
            logger.info("Probing '%s' at %s", artifact.name, url)
            probe_result = self._get_probe().wait_until_ready(
                url,
                timeout=self._config.probe_timeout,
                is_alive=lambda: backend.is_running(handle),
                cancel_event=abort,
            )
            output = backend.service_logs(handle)
        finally:
            backend.stop_service(handle)

        if probe_result.outcome is ProbeOutcome.CANCELLED:
            raise PipelineCancelledError()
        if probe_result.ready:
            return self._passed(artifact.name, output, start)
        return self._failed(
            artifact.name,
            FailureKind.TEST,
            f"Readiness probe failed: {probe_result.describe()}",
            output,
            start,
        )

    def _health_url(self, handle: ServiceHandle, path: str) -> str:
        host = self._config.probe_host or handle.host
        return f"http://{host}:{handle.port}{path}"
