"""Environment-driven settings for pipeline runs."""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

PORT_ENV_PREFIX = "PIPELINE_PORT_"


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_int(env: Mapping[str, str], name: str) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def port_env_name(component: str) -> str:
    """Environment variable holding the host port override for a component."""
    return PORT_ENV_PREFIX + component.upper().replace("-", "_").replace(".", "_")


@dataclass(frozen=True)
class OrchestratorConfig:
    """Timeouts, concurrency and port bindings for a pipeline run.

    Attributes:
        max_workers: Concurrency bound. None means one worker per component.
        build_timeout: Seconds allowed per component build.
        test_timeout: Seconds allowed per one-shot test or service start.
        probe_timeout: Seconds a service has to become ready.
        probe_interval: Seconds between readiness attempts.
        pull_timeout: Seconds allowed per base image pull.
        probe_host: Host the readiness probe connects to. Defaults to
            the address the backend published the service on.
        port_bindings: Component name -> host port for its health port.
    """

    max_workers: Optional[int] = None
    build_timeout: float = 600.0
    test_timeout: float = 60.0
    probe_timeout: float = 30.0
    probe_interval: float = 0.5
    pull_timeout: float = 300.0
    probe_host: Optional[str] = None
    port_bindings: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        for name in (
            "build_timeout",
            "test_timeout",
            "probe_timeout",
            "probe_interval",
            "pull_timeout",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        for component, port in self.port_bindings.items():
            if not 0 < port < 65536:
                raise ValueError(f"Port for {component} must be 1-65535, got {port}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "OrchestratorConfig":
        """Build settings from environment variables.

        Environment variables:
            PIPELINE_MAX_WORKERS: Concurrency bound (0 or unset = unbounded).
            PIPELINE_BUILD_TIMEOUT, PIPELINE_TEST_TIMEOUT,
            PIPELINE_PROBE_TIMEOUT, PIPELINE_PROBE_INTERVAL,
            PIPELINE_PULL_TIMEOUT: Durations in seconds.
            PIPELINE_PROBE_HOST: Host used by the readiness probe.
            PIPELINE_PORT_<COMPONENT>: Host port for a component's health port.

        Raises:
            ValueError: If a variable holds an invalid value.
        """
        env = os.environ if env is None else env
        defaults = cls()

        port_bindings: dict[str, int] = {}
        for name, raw in env.items():
            if name.startswith(PORT_ENV_PREFIX) and raw:
                port = _env_int(env, name)
                if port is None or not 0 < port < 65536:
                    raise ValueError(f"{name} must be a port number, got {raw!r}")
                port_bindings[name[len(PORT_ENV_PREFIX):]] = port

        return cls(
            max_workers=_env_int(env, "PIPELINE_MAX_WORKERS") or None,
            build_timeout=_env_float(env, "PIPELINE_BUILD_TIMEOUT", defaults.build_timeout),
            test_timeout=_env_float(env, "PIPELINE_TEST_TIMEOUT", defaults.test_timeout),
            probe_timeout=_env_float(env, "PIPELINE_PROBE_TIMEOUT", defaults.probe_timeout),
            probe_interval=_env_float(
                env, "PIPELINE_PROBE_INTERVAL", defaults.probe_interval
            ),
            pull_timeout=_env_float(env, "PIPELINE_PULL_TIMEOUT", defaults.pull_timeout),
            probe_host=env.get("PIPELINE_PROBE_HOST") or None,
            port_bindings=port_bindings,
        )

    def host_port_for(self, component: str) -> Optional[int]:
        """Host port bound to the component's health port, if configured."""
        if component in self.port_bindings:
            return self.port_bindings[component]
        key = port_env_name(component)[len(PORT_ENV_PREFIX):]
        return self.port_bindings.get(key)
