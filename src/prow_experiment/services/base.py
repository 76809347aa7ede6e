"""Request/outcome service skeleton used by the event pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from .errors import ServiceFailure

RequestT = TypeVar("RequestT")
OutcomeT = TypeVar("OutcomeT")


class BaseService(ABC, Generic[RequestT, OutcomeT]):
    """One unit of work that turns a request into an outcome.

    ``_run`` does the work and raises ``ServiceFailure`` for anticipated
    problems (git unavailable, fetch rejected, workspace unusable). Calling
    the service routes those failures to ``_handle_failure``; any other
    exception escapes to the caller.
    """

    def __call__(self, request: RequestT) -> OutcomeT:
        try:
            return self._run(request)
        except ServiceFailure as failure:
            return self._handle_failure(failure)

    @abstractmethod
    def _run(self, request: RequestT) -> OutcomeT: ...

    def _handle_failure(self, error: ServiceFailure) -> OutcomeT:
        """Turn ``error`` into an outcome. Propagates it unless overridden."""
        raise error
