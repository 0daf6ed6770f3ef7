# decision/collaborators.py

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

UTILIZATION_WINDOW = timedelta(minutes=5)


@dataclass(frozen=True)
class ResourceIdentity:
    """A scalable target: one instance within one project."""

    project: str
    instance: str

    @property
    def name(self) -> str:
        return f"projects/{self.project}/instances/{self.instance}"


class CapacityReader(Protocol):
    def current(self, resource: ResourceIdentity, timeout: float | None = None) -> int:
        """Return the current processing units. Raises CollaboratorError."""
        ...


class UtilizationReader(Protocol):
    def recent(
        self,
        resource: ResourceIdentity,
        window: timedelta = UTILIZATION_WINDOW,
        timeout: float | None = None,
    ) -> float:
        """Return utilization (%) over the trailing window. Raises NoDataError if the window is empty."""
        ...


class CapacityWriter(Protocol):
    def apply(self, resource: ResourceIdentity, new_units: int, timeout: float | None = None) -> bool:
        """
        Set processing units and return only once the change is applied.

        Returns True once written, False if nothing was written (dry run).
        Raises CollaboratorError.
        """
        ...
