"""Tests for Dockerfile and build context rendering."""

from src.backend import render_dockerfile, write_build_context
from src.pipeline import BuildDescriptor, HealthCheck, SetupStep


def _service() -> BuildDescriptor:
    return BuildDescriptor(
        name="api",
        image="node:18-alpine",
        workdir="/app",
        env={"PORT": "4000"},
        steps=(
            SetupStep.write_file("/app/package.json", '{"name": "api"}'),
            SetupStep.install("npm", "install", cache_mounts={"/root/.npm": "npm-cache"}),
        ),
        ports=frozenset({4000, 3000}),
        entrypoint=("npm", "start"),
        health_check=HealthCheck(port=4000),
    )


class TestRenderDockerfile:
    def test_full_service(self):
        assert render_dockerfile(_service()).splitlines() == [
            "# syntax=docker/dockerfile:1",
            "FROM node:18-alpine",
            'ENV PORT="4000"',
            "WORKDIR /app",
            "COPY files/0 /app/package.json",
            "RUN --mount=type=cache,id=npm-cache,target=/root/.npm,sharing=locked "
            '["npm", "install"]',
            "EXPOSE 3000",
            "EXPOSE 4000",
            'CMD ["npm", "start"]',
        ]

    def test_minimal_component(self):
        descriptor = BuildDescriptor(
            name="echo", image="alpine:latest", entrypoint=("echo", "it's ok")
        )
        assert render_dockerfile(descriptor) == (
            "# syntax=docker/dockerfile:1\n"
            "FROM alpine:latest\n"
            'CMD ["echo", "it\'s ok"]\n'
        )

    def test_install_without_cache(self):
        descriptor = BuildDescriptor(
            name="dev",
            image="alpine",
            steps=(SetupStep.install("apk", "add", "git"),),
            entrypoint=("true",),
        )
        assert 'RUN ["apk", "add", "git"]' in render_dockerfile(descriptor)


class TestWriteBuildContext:
    def test_writes_payloads_and_dockerfile(self, tmp_path):
        dockerfile = write_build_context(_service(), tmp_path)

        assert dockerfile == tmp_path / "Dockerfile"
        assert dockerfile.read_text().startswith("# syntax=docker/dockerfile:1")
        assert (tmp_path / "files" / "0").read_text() == '{"name": "api"}'
        # Install steps have no payload
        assert not (tmp_path / "files" / "1").exists()
