"""Common types and errors for tenant provisioning."""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


class DriverError(Exception):
    """Base exception for provisioning errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class MultiError(DriverError):
    """Ordered collection of independently raised errors.

    Raised where independent sub-operations are joined (satellite
    namespaces, tenant deletion). An empty MultiError means success.
    """

    def __init__(self, errors: Optional[list] = None):
        self.errors: list[Exception] = list(errors or [])
        super().__init__("E400", self._render())

    def _render(self) -> str:
        return "\n".join(str(e) for e in self.errors)

    def append(self, error: Exception) -> None:
        self.errors.append(error)
        self.message = self._render()
        self.args = (f"{self.code}: {self.message}",)

    def __bool__(self) -> bool:
        return bool(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def __str__(self) -> str:
        return self._render()


@dataclass
class ProvisioningResult:
    """Outcome of provisioning one satellite namespace.

    Attributes:
        namespace: Target namespace
        status: pending, applying, succeeded or failed
        error: Error raised while applying (failed only)
        started_at: Timestamp when applying started
        completed_at: Timestamp when the task finished
    """
    namespace: str
    status: str = 'pending'
    error: Optional[Exception] = None
    started_at: Optional[float] = None
    completed_at: Optional[float] = None

    def start(self) -> None:
        self.status = 'applying'
        self.started_at = time.time()

    def succeed(self) -> None:
        self.status = 'succeeded'
        self.completed_at = time.time()

    def fail(self, error: Exception) -> None:
        self.status = 'failed'
        self.error = error
        self.completed_at = time.time()

    @property
    def success(self) -> bool:
        return self.status == 'succeeded'

    @property
    def duration(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return self.completed_at - self.started_at
        return None

    def to_dict(self) -> dict:
        d: dict = {
            'namespace': self.namespace,
            'status': self.status,
        }
        if self.error is not None:
            d['error'] = str(self.error)
        if self.duration is not None:
            d['duration'] = round(self.duration, 3)
        return d


@dataclass
class SweepReport:
    """Errors logged while sweeping one namespace."""
    namespace: str
    deleted: list[str] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
