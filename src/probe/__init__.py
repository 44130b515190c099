"""Readiness probing for long-running components.

Public API:
    - ReadinessProbe: Polls an HTTP health endpoint
    - ProbeResult / ProbeOutcome: Why polling stopped
"""

from .readiness import ProbeOutcome, ProbeResult, ReadinessProbe

__all__ = [
    "ProbeOutcome",
    "ProbeResult",
    "ReadinessProbe",
]
