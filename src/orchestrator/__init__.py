"""Pipeline orchestrator for container components.

Builds every component through an execution backend, smoke-tests each
built artifact, and aggregates the results into a PipelineReport with
per-component error isolation.
"""

from .config import OrchestratorConfig, port_env_name
from .pipeline import PipelineOrchestrator

__all__ = [
    "OrchestratorConfig",
    "PipelineOrchestrator",
    "port_env_name",
]
