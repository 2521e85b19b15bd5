"""Domain errors raised by the store and the reconciliation loop."""

from typing import Optional

from ..model.resources import ResourceKind


class KubeSimError(Exception):
    """Base class for every condition the interpreter reports as a failure."""

    error_kind = "Internal"


class DuplicateError(KubeSimError):
    """A resource with the same name already exists."""

    error_kind = "Duplicate"

    def __init__(self, kind: ResourceKind, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f'{kind.display_name} "{name}" already exists')


class NotFoundError(KubeSimError):
    """The named resource does not exist (or is already going away)."""

    error_kind = "NotFound"

    def __init__(self, kind: ResourceKind, name: str, reason: Optional[str] = None):
        self.kind = kind
        self.name = name
        message = f'{kind.display_name} "{name}" not found'
        if reason:
            message = f'{kind.display_name} "{name}" {reason}'
        super().__init__(message)


class CapacityError(KubeSimError):
    """No node has room for another pod."""

    error_kind = "Capacity"

    def __init__(self, pod_name: str):
        self.pod_name = pod_name
        super().__init__(f'No node has free capacity for pod "{pod_name}"')


class ValidationError(KubeSimError):
    """Malformed command or argument."""

    error_kind = "Validation"


class RollbackError(KubeSimError):
    """A deployment has no previous image to return to."""

    error_kind = "Rollback"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Cannot roll back Deployment "{name}": no previous image')
