"""Base service ABC.

Services extend BaseService and implement _run(request) -> T. They raise
FatalError when the run cannot continue. __call__ catches FatalError and
invokes _handle_failure; the default re-raises. Callers catch FatalError for
interface-specific handling (the CLI prints a diagnostic and exits).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from .errors import FatalError

R = TypeVar("R")
T = TypeVar("T")


class BaseService(ABC, Generic[R, T]):
    """Abstract base for run orchestration services."""

    def __call__(self, request: R) -> T:
        try:
            return self._run(request)
        except FatalError as e:
            return self._handle_failure(e)

    @abstractmethod
    def _run(self, request: R) -> T:
        """Execute the service logic. Raise FatalError on unrecoverable errors."""
        ...

    def _handle_failure(self, error: FatalError) -> T:
        """Handle FatalError. Default re-raises; override for cleanup."""
        raise error
