"""Loads pipeline definitions from JSON files."""

import json
import logging
from pathlib import Path
from typing import Any

from src.pipeline.exceptions import PipelineFileError
from src.pipeline.models import BuildDescriptor, HealthCheck, SetupStep

logger = logging.getLogger(__name__)


def _parse_step(data: dict[str, Any]) -> SetupStep:
    if "install" in data:
        command = data["install"]
        if isinstance(command, str):
            command = ["sh", "-c", command]
        return SetupStep.install(*command, cache_mounts=data.get("cache_mounts"))
    if "write_file" in data:
        return SetupStep.write_file(data["write_file"], data.get("content", ""))
    raise ValueError(f"step must have 'install' or 'write_file': {data}")


def _parse_health_check(data: dict[str, Any] | None) -> HealthCheck | None:
    if data is None:
        return None
    return HealthCheck(port=int(data["port"]), path=data.get("path", "/health"))


def parse_component(data: dict[str, Any]) -> BuildDescriptor:
    """Build a descriptor from its JSON dictionary form.

    Raises:
        KeyError: A required field is missing.
        ValueError: A field is invalid.
    """
    test_command = data.get("test_command")
    return BuildDescriptor(
        name=data["name"],
        image=data["image"],
        entrypoint=tuple(data["entrypoint"]),
        steps=tuple(_parse_step(step) for step in data.get("steps", [])),
        ports=frozenset(int(port) for port in data.get("ports", [])),
        workdir=data.get("workdir", ""),
        env={str(k): str(v) for k, v in data.get("env", {}).items()},
        test_command=tuple(test_command) if test_command else None,
        health_check=_parse_health_check(data.get("health_check")),
    )


def load_pipeline_file(path: Path) -> tuple[str, list[BuildDescriptor]]:
    """Read a pipeline definition file.

    Returns:
        (pipeline name, descriptors in declaration order). The name
        defaults to the file stem.

    Raises:
        PipelineFileError: The file is missing, not JSON, or malformed.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PipelineFileError(str(path), str(e)) from e
    except json.JSONDecodeError as e:
        raise PipelineFileError(str(path), f"not valid JSON ({e})") from e

    if not isinstance(data, dict) or not isinstance(data.get("components"), list):
        raise PipelineFileError(str(path), "expected an object with a 'components' list")

    descriptors = []
    for index, component in enumerate(data["components"]):
        try:
            descriptors.append(parse_component(component))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise PipelineFileError(str(path), f"component #{index}: {e}") from e

    name = data.get("name") or path.stem
    logger.debug("Loaded %d component(s) from %s", len(descriptors), path)
    return name, descriptors
