"""Execution backend driving the docker CLI."""

import logging
import os
import subprocess
import tempfile
import uuid
from pathlib import Path
from typing import Optional

from src.pipeline.exceptions import (
    BuildError,
    EnvironmentUnavailableError,
    ImagePullError,
    SmokeTestError,
)
from src.pipeline.models import BuildDescriptor, BuiltArtifact, ExecResult

from .backend import ExecutionBackend, ServiceHandle
from .build_context import write_build_context

logger = logging.getLogger(__name__)

PING_TIMEOUT = 10.0
CONTROL_TIMEOUT = 30.0


def _decode(data: Optional[bytes | str]) -> str:
    # TimeoutExpired carries bytes even when text=True was requested
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _combined_output(stdout: Optional[bytes | str], stderr: Optional[bytes | str]) -> str:
    return _decode(stdout) + _decode(stderr)


class DockerCLIBackend(ExecutionBackend):
    """Realizes components as docker images and containers.

    Talks to the runtime through the docker CLI, so DOCKER_HOST and the
    CLI's own context configuration apply unchanged. Builds run with
    BuildKit enabled so install steps can mount shared cache volumes.

    Example usage:
        backend = DockerCLIBackend()  # Uses DOCKER_BIN env var or "docker"
        backend.ping()
    """

    DEFAULT_BINARY = "docker"
    IMAGE_PREFIX = "pipeline"

    def __init__(
        self,
        binary: Optional[str] = None,
        docker_host: Optional[str] = None,
        publish_host: str = "127.0.0.1",
    ):
        """Initialize the docker backend.

        Args:
            binary: docker executable. Defaults to DOCKER_BIN env var, or "docker".
            docker_host: Runtime endpoint. Defaults to the DOCKER_HOST env var.
            publish_host: Host address service ports are published on.
        """
        self._binary = binary or os.getenv("DOCKER_BIN") or self.DEFAULT_BINARY
        self._docker_host = docker_host or os.getenv("DOCKER_HOST")
        self._publish_host = publish_host
        self._run_id = uuid.uuid4().hex[:8]

    @property
    def backend_name(self) -> str:
        return "docker"

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["DOCKER_BUILDKIT"] = "1"
        if self._docker_host:
            env["DOCKER_HOST"] = self._docker_host
        return env

    def _docker(self, *args: str, timeout: float) -> subprocess.CompletedProcess:
        """Run a docker CLI command, capturing output.

        Raises:
            EnvironmentUnavailableError: The docker binary is missing.
            subprocess.TimeoutExpired: The command exceeded timeout.
        """
        command = [self._binary, *args]
        logger.debug("Running %s", " ".join(command))
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=self._env(),
            )
        except FileNotFoundError as e:
            raise EnvironmentUnavailableError(
                f"Container CLI '{self._binary}' not found. Install docker or set DOCKER_BIN."
            ) from e

    def _instance_name(self, component: str, role: str) -> str:
        return f"{self.IMAGE_PREFIX}-{component}-{role}-{self._run_id}-{uuid.uuid4().hex[:6]}"

    def _force_remove(self, container: str) -> None:
        try:
            proc = self._docker("rm", "--force", container, timeout=CONTROL_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning("Timed out removing container %s", container)
            return
        if proc.returncode != 0:
            logger.warning(
                "Failed to remove container %s: %s", container, proc.stderr.strip()
            )

    def ping(self) -> None:
        try:
            proc = self._docker(
                "version", "--format", "{{.Server.Version}}", timeout=PING_TIMEOUT
            )
        except subprocess.TimeoutExpired as e:
            raise EnvironmentUnavailableError(
                f"Container runtime did not answer within {PING_TIMEOUT}s"
            ) from e
        if proc.returncode != 0:
            raise EnvironmentUnavailableError(
                f"Container runtime unreachable: {proc.stderr.strip() or proc.stdout.strip()}"
            )
        logger.info("Connected to docker server %s", proc.stdout.strip())

    def pull_image(self, image: str, timeout: float) -> str:
        logger.info("Pulling base image %s", image)
        try:
            proc = self._docker("pull", image, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise ImagePullError(
                image,
                f"Pulling {image} timed out after {timeout}s",
                _combined_output(e.stdout, e.stderr),
            ) from e
        if proc.returncode != 0:
            raise ImagePullError(
                image,
                f"Pulling {image} failed with exit code {proc.returncode}",
                _combined_output(proc.stdout, proc.stderr),
            )

        inspect = self._docker(
            "image", "inspect", "--format", "{{.Id}}", image, timeout=CONTROL_TIMEOUT
        )
        if inspect.returncode != 0:
            raise ImagePullError(
                image, f"Pulled image {image} cannot be inspected", inspect.stderr
            )
        return inspect.stdout.strip()

    def build(self, descriptor: BuildDescriptor, timeout: float) -> BuiltArtifact:
        tag = f"{self.IMAGE_PREFIX}-{descriptor.name}:{self._run_id}".lower()

        with tempfile.TemporaryDirectory(prefix=f"{descriptor.name}-") as tmp:
            context = Path(tmp)
            dockerfile = write_build_context(descriptor, context)
            logger.info("Building %s as %s", descriptor.name, tag)
            try:
                proc = self._docker(
                    "build",
                    "--progress=plain",
                    "--tag",
                    tag,
                    "--file",
                    str(dockerfile),
                    str(context),
                    timeout=timeout,
                )
            except subprocess.TimeoutExpired as e:
                raise BuildError(
                    descriptor.name,
                    f"Build timed out after {timeout}s",
                    _combined_output(e.stdout, e.stderr),
                ) from e

        output = _combined_output(proc.stdout, proc.stderr)
        if proc.returncode != 0:
            raise BuildError(
                descriptor.name,
                f"Build failed with exit code {proc.returncode}",
                output,
            )
        return BuiltArtifact(descriptor=descriptor, image_ref=tag, build_output=output)

    def run_once(
        self, artifact: BuiltArtifact, command: tuple[str, ...], timeout: float
    ) -> ExecResult:
        name = self._instance_name(artifact.name, "test")
        try:
            proc = self._docker(
                "run", "--rm", "--name", name, artifact.image_ref, *command,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning("%s did not finish within %ss", artifact.name, timeout)
            self._force_remove(name)
            return ExecResult(
                exit_code=None,
                output=_combined_output(e.stdout, e.stderr),
                timed_out=True,
                duration_seconds=timeout,
            )
        return ExecResult(
            exit_code=proc.returncode,
            output=_combined_output(proc.stdout, proc.stderr),
        )

    def start_service(
        self,
        artifact: BuiltArtifact,
        host_port: Optional[int],
        timeout: float,
    ) -> ServiceHandle:
        health = artifact.descriptor.health_check
        if health is None:
            raise SmokeTestError(artifact.name, "Component has no health check to publish")

        name = self._instance_name(artifact.name, "service")
        binding = f"{self._publish_host}:{host_port or ''}:{health.port}"
        try:
            proc = self._docker(
                "run", "--detach", "--name", name, "--publish", binding,
                artifact.image_ref,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            self._force_remove(name)
            raise SmokeTestError(
                artifact.name,
                f"Service start timed out after {timeout}s",
                _combined_output(e.stdout, e.stderr),
            ) from e
        if proc.returncode != 0:
            self._force_remove(name)
            raise SmokeTestError(
                artifact.name,
                f"Service failed to start (exit code {proc.returncode})",
                _combined_output(proc.stdout, proc.stderr),
            )

        container_id = proc.stdout.strip()
        if host_port is None:
            host_port = self._published_port(artifact.name, name, health.port)
        return ServiceHandle(
            component=artifact.name,
            container_id=container_id,
            host=self._publish_host,
            port=host_port,
        )

    def _published_port(self, component: str, container: str, container_port: int) -> int:
        """Look up the host port docker assigned to container_port.

        The container is removed before any error is raised.
        """
        try:
            proc = self._docker(
                "port", container, f"{container_port}/tcp", timeout=CONTROL_TIMEOUT
            )
        except subprocess.TimeoutExpired as e:
            self._force_remove(container)
            raise SmokeTestError(
                component,
                f"Port lookup timed out after {CONTROL_TIMEOUT}s",
                _combined_output(e.stdout, e.stderr),
            ) from e

        output = _combined_output(proc.stdout, proc.stderr)
        if proc.returncode != 0 or not proc.stdout.strip():
            self._force_remove(container)
            raise SmokeTestError(component, f"Port {container_port} was not published", output)
        # Output looks like "127.0.0.1:49153", one line per binding
        first = proc.stdout.strip().splitlines()[0]
        try:
            return int(first.rsplit(":", 1)[1])
        except (IndexError, ValueError) as e:
            self._force_remove(container)
            raise SmokeTestError(
                component, f"Unexpected port mapping {first!r}", output
            ) from e

    def is_running(self, handle: ServiceHandle) -> bool:
        try:
            proc = self._docker(
                "inspect", "--format", "{{.State.Running}}", handle.container_id,
                timeout=CONTROL_TIMEOUT,
            )
        except subprocess.TimeoutExpired:
            # Unknown state counts as alive; the readiness deadline still applies
            logger.warning(
                "Timed out inspecting %s, assuming it is running", handle.component
            )
            return True
        return proc.returncode == 0 and proc.stdout.strip() == "true"

    def service_logs(self, handle: ServiceHandle) -> str:
        try:
            proc = self._docker("logs", handle.container_id, timeout=CONTROL_TIMEOUT)
        except subprocess.TimeoutExpired as e:
            return _combined_output(e.stdout, e.stderr)
        return _combined_output(proc.stdout, proc.stderr)

    def stop_service(self, handle: ServiceHandle) -> None:
        logger.debug("Stopping %s (%s)", handle.component, handle.container_id[:12])
        self._force_remove(handle.container_id)
