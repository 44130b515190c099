"""Abstract interface for execution backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from src.pipeline.models import BuildDescriptor, BuiltArtifact, ExecResult


@dataclass(frozen=True)
class ServiceHandle:
    """A long-running component started for a readiness probe.

    Attributes:
        component: Name of the component.
        container_id: Backend identifier of the running instance.
        host: Host address the health port is published on.
        port: Host port mapped to the component's health-check port.
    """

    component: str
    container_id: str
    host: str
    port: int


class ExecutionBackend(ABC):
    """Abstract base class for isolated-process runtimes.

    Implementations should handle:
    - Reachability checks for the runtime itself
    - Realizing a BuildDescriptor into a runnable image
    - Running one-shot commands and detached services from that image
    - Translating runtime failures into exceptions from src.pipeline.exceptions

    Every method that may block takes an explicit timeout in seconds.

    To implement a new backend:
    1. Subclass ExecutionBackend
    2. Implement all abstract methods
    3. Raise EnvironmentUnavailableError only when the runtime itself is
       unreachable; component-level problems raise BuildError,
       ImagePullError or SmokeTestError

    Example usage:
        backend = DockerCLIBackend()
        backend.ping()
        image = backend.pull_image("alpine:latest", timeout=300)
        artifact = backend.build(descriptor, timeout=600)
        result = backend.run_once(artifact, ("echo", "ok"), timeout=60)
    """

    @abstractmethod
    def ping(self) -> None:
        """Check the runtime is reachable.

        Raises:
            EnvironmentUnavailableError: The runtime cannot be contacted.
        """
        pass

    @abstractmethod
    def pull_image(self, image: str, timeout: float) -> str:
        """Make a base image available locally.

        Returns:
            Backend identifier of the pulled image.

        Raises:
            ImagePullError: The image could not be pulled.
            EnvironmentUnavailableError: The runtime cannot be contacted.
        """
        pass

    @abstractmethod
    def build(self, descriptor: BuildDescriptor, timeout: float) -> BuiltArtifact:
        """Apply the descriptor's setup steps on top of its base image.

        Raises:
            BuildError: A setup step failed or the build timed out.
            EnvironmentUnavailableError: The runtime cannot be contacted.
        """
        pass

    @abstractmethod
    def run_once(
        self, artifact: BuiltArtifact, command: tuple[str, ...], timeout: float
    ) -> ExecResult:
        """Run a command to completion in a fresh instance of the artifact.

        A timeout is reported through ExecResult.timed_out, not raised.
        """
        pass

    @abstractmethod
    def start_service(
        self,
        artifact: BuiltArtifact,
        host_port: Optional[int],
        timeout: float,
    ) -> ServiceHandle:
        """Start the artifact's entrypoint detached, publishing its health port.

        Args:
            artifact: The built component.
            host_port: Host port to bind, or None for any free port.
            timeout: Seconds allowed for the start request.

        Raises:
            SmokeTestError: The service could not be started. No container is
                left running when this is raised.
        """
        pass

    @abstractmethod
    def is_running(self, handle: ServiceHandle) -> bool:
        """Return True while the service process is alive, or when its state is unknown."""
        pass

    @abstractmethod
    def service_logs(self, handle: ServiceHandle) -> str:
        """Return the service's combined output so far."""
        pass

    @abstractmethod
    def stop_service(self, handle: ServiceHandle) -> None:
        """Stop and remove the service instance."""
        pass

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the name of the runtime."""
        pass
