"""Dependency cache shared across component builds.

Public API:
    - DependencyCache: Interface for write-once-per-key caches
    - InMemoryDependencyCache: Thread-safe in-memory implementation
"""

from .dependency_cache import DependencyCache, InMemoryDependencyCache

__all__ = [
    "DependencyCache",
    "InMemoryDependencyCache",
]
