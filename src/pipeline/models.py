"""Data models for pipeline components and run results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional


class StepKind(Enum):
    """Kinds of setup steps a component build can perform."""

    INSTALL = "install"
    WRITE_FILE = "write_file"


class FailureKind(Enum):
    """Which phase of a component's pipeline failed."""

    BUILD = "build"
    TEST = "test"


@dataclass(frozen=True)
class SetupStep:
    """A single ordered build step.

    Attributes:
        kind: Whether the step installs dependencies or writes a file.
        command: Install command (INSTALL steps only).
        path: Absolute destination path inside the image (WRITE_FILE only).
        content: Literal file content (WRITE_FILE only).
        cache_mounts: Container path -> shared cache key, mounted while an
            install command runs.
    """

    kind: StepKind
    command: tuple[str, ...] = ()
    path: str = ""
    content: str = ""
    cache_mounts: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if self.kind is StepKind.INSTALL and not self.command:
            raise ValueError("install step requires a command")
        if self.kind is StepKind.WRITE_FILE and not self.path.startswith("/"):
            raise ValueError(f"write_file step requires an absolute path, got {self.path!r}")

    @classmethod
    def install(
        cls, *command: str, cache_mounts: Optional[Mapping[str, str]] = None
    ) -> "SetupStep":
        mounts = tuple(sorted((cache_mounts or {}).items()))
        return cls(kind=StepKind.INSTALL, command=tuple(command), cache_mounts=mounts)

    @classmethod
    def write_file(cls, path: str, content: str) -> "SetupStep":
        return cls(kind=StepKind.WRITE_FILE, path=path, content=content)


@dataclass(frozen=True)
class HealthCheck:
    """HTTP readiness endpoint exposed by a long-running component."""

    port: int
    path: str = "/health"

    def __post_init__(self) -> None:
        if not self.path.startswith("/"):
            raise ValueError(f"health check path must start with '/', got {self.path!r}")


@dataclass(frozen=True)
class BuildDescriptor:
    """Immutable definition of one pipeline component.

    Attributes:
        name: Component name, unique within a pipeline run.
        image: Base execution image (e.g. "alpine:latest").
        entrypoint: Command the built image runs.
        steps: Ordered setup steps applied on top of the base image.
        ports: Exposed container ports.
        workdir: Working directory inside the image.
        env: Environment variables baked into the image.
        test_command: Diagnostic command used as the one-shot smoke test
            instead of the entrypoint.
        health_check: When set, the component is a long-running service and
            is smoke-tested with a readiness probe against this endpoint.
    """

    name: str
    image: str
    entrypoint: tuple[str, ...]
    steps: tuple[SetupStep, ...] = ()
    ports: frozenset[int] = frozenset()
    workdir: str = ""
    env: tuple[tuple[str, str], ...] = ()
    test_command: Optional[tuple[str, ...]] = None
    health_check: Optional[HealthCheck] = None

    def __post_init__(self) -> None:
        # Accept lists/dicts from callers but store hashable, immutable forms
        object.__setattr__(self, "entrypoint", tuple(self.entrypoint))
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "ports", frozenset(self.ports))
        if isinstance(self.env, Mapping):
            object.__setattr__(self, "env", tuple(sorted(self.env.items())))
        else:
            object.__setattr__(self, "env", tuple(self.env))
        if self.test_command is not None:
            object.__setattr__(self, "test_command", tuple(self.test_command))

        if not self.name or not self.name.strip():
            raise ValueError("component name must be non-empty")
        if not self.image:
            raise ValueError(f"component {self.name!r} has no base image")
        if not self.entrypoint:
            raise ValueError(f"component {self.name!r} has no entrypoint")
        for port in self.ports:
            if not 0 < port < 65536:
                raise ValueError(f"component {self.name!r} has invalid port {port}")
        if self.health_check is not None and self.health_check.port not in self.ports:
            raise ValueError(
                f"component {self.name!r} health check port "
                f"{self.health_check.port} is not exposed"
            )

    @property
    def is_service(self) -> bool:
        """True when the component is long-running and probed for readiness."""
        return self.health_check is not None

    @property
    def smoke_command(self) -> tuple[str, ...]:
        return self.test_command or self.entrypoint


@dataclass(frozen=True)
class BuiltArtifact:
    """A descriptor realized into a runnable image by an execution backend."""

    descriptor: BuildDescriptor
    image_ref: str
    build_output: str = ""

    @property
    def name(self) -> str:
        return self.descriptor.name


@dataclass(frozen=True)
class ExecResult:
    """Outcome of running a command inside a built artifact."""

    exit_code: Optional[int]
    output: str
    timed_out: bool = False
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.exit_code == 0


@dataclass(frozen=True)
class TestResult:
    """Smoke-test outcome for one component."""

    # Keep pytest from collecting this class
    __test__ = False

    component: str
    passed: bool
    output: str = ""
    error: Optional[str] = None
    failure: Optional[FailureKind] = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "component": self.component,
            "passed": self.passed,
            "output": self.output,
            "error": self.error,
            "failure": self.failure.value if self.failure else None,
            "duration_seconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class PipelineReport:
    """Aggregate result of a full pipeline run, in declaration order."""

    pipeline: str
    started_at: datetime
    finished_at: datetime
    results: tuple[TestResult, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def failures(self) -> list[TestResult]:
        return [r for r in self.results if not r.passed]

    @property
    def build_failures(self) -> list[TestResult]:
        return [r for r in self.results if r.failure is FailureKind.BUILD]

    @property
    def test_failures(self) -> list[TestResult]:
        return [r for r in self.results if r.failure is FailureKind.TEST]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "pipeline": self.pipeline,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "success": self.success,
            "results": [r.to_dict() for r in self.results],
        }
