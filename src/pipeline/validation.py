"""Validation and filtering of component descriptor sequences."""

from collections import Counter
from typing import Iterable, Optional, Sequence

from .exceptions import DuplicateComponentError, UnknownComponentError
from .models import BuildDescriptor


def validate_descriptors(descriptors: Sequence[BuildDescriptor]) -> None:
    """Reject descriptor sequences with duplicate component names.

    Raises:
        DuplicateComponentError: If any name appears more than once.
    """
    counts = Counter(d.name for d in descriptors)
    duplicates = [name for name, count in counts.items() if count > 1]
    if duplicates:
        raise DuplicateComponentError(duplicates)


def select_components(
    descriptors: Sequence[BuildDescriptor],
    only: Optional[Iterable[str]] = None,
) -> list[BuildDescriptor]:
    """Restrict descriptors to the named components, keeping declaration order.

    Args:
        descriptors: All components of the pipeline.
        only: Names to keep. None or empty keeps everything.

    Raises:
        UnknownComponentError: If a requested name is not defined.
    """
    if not only:
        return list(descriptors)

    wanted = set(only)
    available = [d.name for d in descriptors]
    unknown = wanted - set(available)
    if unknown:
        raise UnknownComponentError(unknown, available)
    return [d for d in descriptors if d.name in wanted]
