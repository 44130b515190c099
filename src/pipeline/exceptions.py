"""Custom exceptions for the pipeline module."""

from typing import Iterable, Optional


class PipelineError(Exception):
    """Base exception for pipeline errors."""

    pass


class EnvironmentUnavailableError(PipelineError):
    """The execution backend (container runtime) cannot be reached.

    This is the only component-independent failure: no build or test can
    proceed, so the whole run is aborted.
    """

    pass


class BuildError(PipelineError):
    """A component's setup steps failed or timed out.

    Attributes:
        component: Name of the component that failed to build.
        output: Captured build output, verbatim.
    """

    def __init__(self, component: str, message: str, output: str = ""):
        super().__init__(message)
        self.component = component
        self.output = output


class ImagePullError(PipelineError):
    """A base execution image could not be pulled.

    Attributes:
        image: The image reference.
        output: Captured pull output, verbatim.
    """

    def __init__(self, image: str, message: str, output: str = ""):
        super().__init__(message)
        self.image = image
        self.output = output


class SmokeTestError(PipelineError):
    """A built component could not be started for its smoke test.

    Attributes:
        component: Name of the component under test.
        output: Captured output, verbatim.
    """

    def __init__(self, component: str, message: str, output: str = ""):
        super().__init__(message)
        self.component = component
        self.output = output


class PipelineCancelledError(PipelineError):
    """The run was cancelled externally; partial results were discarded."""

    def __init__(self, message: str = "Pipeline run cancelled"):
        super().__init__(message)


class PipelineValidationError(PipelineError):
    """The pipeline definition is invalid; raised before any build starts."""

    pass


class DuplicateComponentError(PipelineValidationError):
    """Two or more components share a name.

    Attributes:
        names: The duplicated component names.
    """

    def __init__(self, names: Iterable[str]):
        self.names = sorted(set(names))
        super().__init__(f"Duplicate component names: {', '.join(self.names)}")


class UnknownComponentError(PipelineValidationError):
    """A component filter named components the pipeline does not define.

    Attributes:
        names: The unknown component names.
        available: Names the pipeline does define.
    """

    def __init__(self, names: Iterable[str], available: Optional[Iterable[str]] = None):
        self.names = sorted(set(names))
        self.available = list(available or [])
        message = f"Unknown components: {', '.join(self.names)}"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)


class PipelineFileError(PipelineValidationError):
    """A pipeline definition file could not be read or parsed.

    Attributes:
        path: The offending file path.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Invalid pipeline file {path}: {reason}")
