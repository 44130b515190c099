"""Renders a BuildDescriptor into a Dockerfile and build context directory."""

import json
from pathlib import Path

from src.pipeline.models import BuildDescriptor, SetupStep, StepKind

DOCKERFILE_SYNTAX = "# syntax=docker/dockerfile:1"
FILES_DIR = "files"


def _cache_mount_flags(step: SetupStep) -> str:
    flags = [
        f"--mount=type=cache,id={key},target={target},sharing=locked"
        for target, key in step.cache_mounts
    ]
    return " ".join(flags)


def render_dockerfile(descriptor: BuildDescriptor) -> str:
    """Translate a descriptor into Dockerfile text.

    Write-file steps are COPY instructions from the context's files/
    directory, numbered by step index. Install steps are exec-form RUN
    instructions, with any shared cache mounts attached.
    """
    lines = [DOCKERFILE_SYNTAX, f"FROM {descriptor.image}"]

    for key, value in descriptor.env:
        lines.append(f"ENV {key}={json.dumps(value)}")

    if descriptor.workdir:
        lines.append(f"WORKDIR {descriptor.workdir}")

    for index, step in enumerate(descriptor.steps):
        if step.kind is StepKind.WRITE_FILE:
            lines.append(f"COPY {FILES_DIR}/{index} {step.path}")
        else:
            flags = _cache_mount_flags(step)
            command = json.dumps(list(step.command))
            lines.append(f"RUN {flags} {command}" if flags else f"RUN {command}")

    for port in sorted(descriptor.ports):
        lines.append(f"EXPOSE {port}")

    lines.append(f"CMD {json.dumps(list(descriptor.entrypoint))}")
    return "\n".join(lines) + "\n"


def write_build_context(descriptor: BuildDescriptor, directory: Path) -> Path:
    """Populate directory with the Dockerfile and write-file payloads.

    Returns:
        Path to the written Dockerfile.
    """
    files_dir = directory / FILES_DIR
    files_dir.mkdir(parents=True, exist_ok=True)

    for index, step in enumerate(descriptor.steps):
        if step.kind is StepKind.WRITE_FILE:
            (files_dir / str(index)).write_text(step.content, encoding="utf-8")

    dockerfile = directory / "Dockerfile"
    dockerfile.write_text(render_dockerfile(descriptor), encoding="utf-8")
    return dockerfile
