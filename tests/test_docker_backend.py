"""Unit tests for the docker CLI backend."""

import subprocess
from unittest.mock import patch

import pytest

from src.backend import DockerCLIBackend, ServiceHandle
from src.pipeline import (
    BuildDescriptor,
    BuildError,
    BuiltArtifact,
    EnvironmentUnavailableError,
    HealthCheck,
    ImagePullError,
    SmokeTestError,
)


def _completed(args, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr=stderr)


def _artifact(health_port=None) -> BuiltArtifact:
    if health_port is None:
        descriptor = BuildDescriptor(name="echo", image="alpine", entrypoint=("echo", "hi"))
    else:
        descriptor = BuildDescriptor(
            name="api",
            image="node:18-alpine",
            entrypoint=("npm", "start"),
            ports={health_port},
            health_check=HealthCheck(port=health_port),
        )
    return BuiltArtifact(descriptor=descriptor, image_ref=f"pipeline-{descriptor.name}:run")


@pytest.fixture
def backend():
    return DockerCLIBackend(binary="docker", docker_host="tcp://runtime:2375")


@pytest.fixture
def mock_run():
    with patch("src.backend.docker_backend.subprocess.run") as mock:
        yield mock


class TestPing:
    def test_reachable(self, backend, mock_run):
        mock_run.return_value = _completed([], stdout="24.0.7\n")

        backend.ping()

        args, kwargs = mock_run.call_args
        assert args[0][:2] == ["docker", "version"]
        assert kwargs["env"]["DOCKER_HOST"] == "tcp://runtime:2375"
        assert kwargs["env"]["DOCKER_BUILDKIT"] == "1"

    def test_daemon_down(self, backend, mock_run):
        mock_run.return_value = _completed(
            [], returncode=1, stderr="Cannot connect to the Docker daemon\n"
        )

        with pytest.raises(EnvironmentUnavailableError, match="Cannot connect"):
            backend.ping()

    def test_cli_missing(self, backend, mock_run):
        mock_run.side_effect = FileNotFoundError("docker")

        with pytest.raises(EnvironmentUnavailableError, match="not found"):
            backend.ping()

    def test_ping_timeout(self, backend, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(["docker"], 10)

        with pytest.raises(EnvironmentUnavailableError, match="did not answer"):
            backend.ping()


class TestPullImage:
    def test_returns_image_id(self, backend, mock_run):
        mock_run.side_effect = [
            _completed([], stdout="latest: Pulling from library/alpine\n"),
            _completed([], stdout="sha256:abc\n"),
        ]

        assert backend.pull_image("alpine:latest", timeout=30) == "sha256:abc"
        assert mock_run.call_args_list[0].args[0] == ["docker", "pull", "alpine:latest"]

    def test_pull_failure_keeps_output(self, backend, mock_run):
        mock_run.return_value = _completed(
            [], returncode=1, stderr="manifest unknown\n"
        )

        with pytest.raises(ImagePullError) as exc_info:
            backend.pull_image("nope:latest", timeout=30)

        assert exc_info.value.image == "nope:latest"
        assert exc_info.value.output == "manifest unknown\n"

    def test_pull_timeout(self, backend, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(
            ["docker", "pull"], 30, output=b"partial"
        )

        with pytest.raises(ImagePullError, match="timed out") as exc_info:
            backend.pull_image("big:latest", timeout=30)
        assert exc_info.value.output == "partial"


class TestBuild:
    def test_successful_build(self, backend, mock_run):
        captured = {}

        def fake_run(command, **kwargs):
            dockerfile = command[command.index("--file") + 1]
            with open(dockerfile) as f:
                captured["dockerfile"] = f.read()
            return _completed(command, stdout="#1 DONE\n")

        mock_run.side_effect = fake_run
        descriptor = BuildDescriptor(name="Echo", image="alpine", entrypoint=("echo", "hi"))

        artifact = backend.build(descriptor, timeout=60)

        assert artifact.image_ref.startswith("pipeline-echo:")
        assert artifact.build_output == "#1 DONE\n"
        assert "FROM alpine" in captured["dockerfile"]
        command = mock_run.call_args.args[0]
        assert command[:2] == ["docker", "build"]
        assert mock_run.call_args.kwargs["timeout"] == 60

    def test_failed_build_raises_with_output(self, backend, mock_run):
        mock_run.return_value = _completed(
            [], returncode=1, stdout="#5 RUN npm install\n", stderr="npm ERR! 404\n"
        )
        descriptor = BuildDescriptor(name="api", image="node", entrypoint=("npm", "start"))

        with pytest.raises(BuildError) as exc_info:
            backend.build(descriptor, timeout=60)

        assert exc_info.value.component == "api"
        assert "exit code 1" in str(exc_info.value)
        assert exc_info.value.output == "#5 RUN npm install\nnpm ERR! 404\n"

    def test_build_timeout(self, backend, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(["docker", "build"], 5)
        descriptor = BuildDescriptor(name="api", image="node", entrypoint=("npm", "start"))

        with pytest.raises(BuildError, match="timed out after 5"):
            backend.build(descriptor, timeout=5)


class TestRunOnce:
    def test_captures_exit_and_output(self, backend, mock_run):
        mock_run.return_value = _completed([], returncode=0, stdout="hi\n", stderr="warn\n")

        result = backend.run_once(_artifact(), ("echo", "hi"), timeout=10)

        assert result.succeeded is True
        assert result.output == "hi\nwarn\n"
        command = mock_run.call_args.args[0]
        assert command[:3] == ["docker", "run", "--rm"]
        assert command[-3:] == ["pipeline-echo:run", "echo", "hi"]

    def test_timeout_removes_container(self, backend, mock_run):
        mock_run.side_effect = [
            subprocess.TimeoutExpired(["docker", "run"], 10, output=b"still going"),
            _completed([]),
        ]

        result = backend.run_once(_artifact(), ("sleep", "100"), timeout=10)

        assert result.timed_out is True
        assert result.exit_code is None
        assert result.output == "still going"
        rm_command = mock_run.call_args_list[1].args[0]
        assert rm_command[:3] == ["docker", "rm", "--force"]


class TestServices:
    def test_start_with_random_port(self, backend, mock_run):
        mock_run.side_effect = [
            _completed([], stdout="c0ffee\n"),
            _completed([], stdout="127.0.0.1:49153\n"),
        ]

        handle = backend.start_service(_artifact(health_port=4000), None, timeout=30)

        assert handle == ServiceHandle(
            component="api", container_id="c0ffee", host="127.0.0.1", port=49153
        )
        run_command = mock_run.call_args_list[0].args[0]
        assert "--detach" in run_command
        assert run_command[run_command.index("--publish") + 1] == "127.0.0.1::4000"

    def test_start_with_fixed_port(self, backend, mock_run):
        mock_run.return_value = _completed([], stdout="c0ffee\n")

        handle = backend.start_service(_artifact(health_port=4000), 14000, timeout=30)

        assert handle.port == 14000
        assert mock_run.call_count == 1
        run_command = mock_run.call_args.args[0]
        assert run_command[run_command.index("--publish") + 1] == "127.0.0.1:14000:4000"

    def test_start_failure(self, backend, mock_run):
        mock_run.side_effect = [
            _completed([], returncode=125, stderr="port is already allocated\n"),
            _completed([]),
        ]

        with pytest.raises(SmokeTestError) as exc_info:
            backend.start_service(_artifact(health_port=4000), 14000, timeout=30)

        assert exc_info.value.component == "api"
        assert "already allocated" in exc_info.value.output

    def test_port_lookup_timeout_removes_container(self, backend, mock_run):
        mock_run.side_effect = [
            _completed([], stdout="c0ffee\n"),
            subprocess.TimeoutExpired(["docker", "port"], 30),
            _completed([]),
        ]

        with pytest.raises(SmokeTestError, match="Port lookup timed out") as exc_info:
            backend.start_service(_artifact(health_port=4000), None, timeout=30)

        assert exc_info.value.component == "api"
        run_command = mock_run.call_args_list[0].args[0]
        container_name = run_command[run_command.index("--name") + 1]
        assert mock_run.call_args_list[2].args[0] == [
            "docker", "rm", "--force", container_name,
        ]

    def test_unpublished_port_removes_container(self, backend, mock_run):
        mock_run.side_effect = [
            _completed([], stdout="c0ffee\n"),
            _completed([], returncode=1, stderr="no public port '4000/tcp'\n"),
            _completed([]),
        ]

        with pytest.raises(SmokeTestError, match="not published"):
            backend.start_service(_artifact(health_port=4000), None, timeout=30)

        assert mock_run.call_args_list[2].args[0][:3] == ["docker", "rm", "--force"]

    def test_is_running(self, backend, mock_run):
        handle = ServiceHandle("api", "c0ffee", "127.0.0.1", 49153)

        mock_run.return_value = _completed([], stdout="true\n")
        assert backend.is_running(handle) is True

        mock_run.return_value = _completed([], stdout="false\n")
        assert backend.is_running(handle) is False

    def test_inspect_timeout_counts_as_running(self, backend, mock_run):
        handle = ServiceHandle("api", "c0ffee", "127.0.0.1", 49153)
        mock_run.side_effect = subprocess.TimeoutExpired(["docker", "inspect"], 30)

        assert backend.is_running(handle) is True

    def test_logs_and_stop(self, backend, mock_run):
        handle = ServiceHandle("api", "c0ffee", "127.0.0.1", 49153)
        mock_run.return_value = _completed([], stdout="ready\n", stderr="")

        assert backend.service_logs(handle) == "ready\n"
        backend.stop_service(handle)

        assert mock_run.call_args.args[0] == ["docker", "rm", "--force", "c0ffee"]
