from .base import BaseService
from .errors import (
    DependencyMissingError,
    ExternalCommandFailedError,
    IoFailedError,
    ServiceFailure,
    UnexpectedStateError,
    ValidationFailedError,
)

__all__ = [
    "BaseService",
    "DependencyMissingError",
    "ExternalCommandFailedError",
    "IoFailedError",
    "ServiceFailure",
    "UnexpectedStateError",
    "ValidationFailedError",
]
