"""Execution backends that realize and run pipeline components.

Public API:
    - ExecutionBackend: Interface for container runtimes (for custom implementations)
    - DockerCLIBackend: docker CLI implementation
    - ServiceHandle: A started long-running component
    - render_dockerfile / write_build_context: Descriptor to build context
"""

from .backend import ExecutionBackend, ServiceHandle
from .build_context import render_dockerfile, write_build_context
from .docker_backend import DockerCLIBackend

__all__ = [
    "DockerCLIBackend",
    "ExecutionBackend",
    "ServiceHandle",
    "render_dockerfile",
    "write_build_context",
]
