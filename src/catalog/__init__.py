"""Pipeline definitions: built-in targets and JSON pipeline files.

Public API:
    - get_pipeline: Descriptors of a built-in pipeline by name
    - available_pipelines: Names of built-in pipelines
    - load_pipeline_file: Descriptors from a JSON definition file
    - parse_component: One descriptor from its dictionary form
"""

from .builtin import PIPELINES, available_pipelines, get_pipeline
from .loader import load_pipeline_file, parse_component

__all__ = [
    "PIPELINES",
    "available_pipelines",
    "get_pipeline",
    "load_pipeline_file",
    "parse_component",
]
