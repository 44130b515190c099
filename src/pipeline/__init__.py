"""Pipeline component definitions and run results.

Public API:
    - BuildDescriptor: Immutable definition of one component
    - SetupStep / StepKind: Ordered install and write-file build steps
    - HealthCheck: Readiness endpoint of a long-running component
    - BuiltArtifact: A descriptor realized into a runnable image
    - ExecResult: Outcome of running a command in an artifact
    - TestResult: Smoke-test outcome for one component
    - PipelineReport: Ordered results of a whole run
    - validate_descriptors / select_components: Input checks and filtering
"""

from .exceptions import (
    BuildError,
    DuplicateComponentError,
    EnvironmentUnavailableError,
    ImagePullError,
    PipelineCancelledError,
    PipelineError,
    PipelineFileError,
    PipelineValidationError,
    SmokeTestError,
    UnknownComponentError,
)
from .models import (
    BuildDescriptor,
    BuiltArtifact,
    ExecResult,
    FailureKind,
    HealthCheck,
    PipelineReport,
    SetupStep,
    StepKind,
    TestResult,
)
from .validation import select_components, validate_descriptors

__all__ = [
    # Models
    "BuildDescriptor",
    "BuiltArtifact",
    "ExecResult",
    "FailureKind",
    "HealthCheck",
    "PipelineReport",
    "SetupStep",
    "StepKind",
    "TestResult",
    # Validation
    "select_components",
    "validate_descriptors",
    # Exceptions
    "BuildError",
    "DuplicateComponentError",
    "EnvironmentUnavailableError",
    "ImagePullError",
    "PipelineCancelledError",
    "PipelineError",
    "PipelineFileError",
    "PipelineValidationError",
    "SmokeTestError",
    "UnknownComponentError",
]
