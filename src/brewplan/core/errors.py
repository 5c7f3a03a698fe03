from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from brewplan.core.models import Task


class ErrorKind(Enum):
    """Categories of failure returned by the task engine."""

    INVALID_FIELD = "InvalidField"
    UNKNOWN_DEPENDENCY = "UnknownDependency"
    CYCLIC_DEPENDENCY = "CyclicDependency"
    ILLEGAL_TRANSITION = "IllegalTransition"
    CONFIRMATION_REQUIRED = "ConfirmationRequired"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    NOT_FOUND = "NotFound"


@dataclass(frozen=True)
class TaskError:
    """A typed failure.

    `affected` carries the dependent tasks of a ConfirmationRequired result,
    `cycle` the offending id chain of a CyclicDependency result.
    """

    kind: ErrorKind
    detail: str
    affected: list[Task] = field(default_factory=list)
    cycle: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.detail}"

    @property
    def needs_confirmation(self) -> bool:
        return self.kind is ErrorKind.CONFIRMATION_REQUIRED

    @property
    def affected_ids(self) -> list[str]:
        return [t.id for t in self.affected]


def invalid_field(detail: str) -> TaskError:
    return TaskError(ErrorKind.INVALID_FIELD, detail)


def not_found(task_id: str) -> TaskError:
    return TaskError(ErrorKind.NOT_FOUND, f"Task not found: {task_id}")


def persistence_failure(detail: str) -> TaskError:
    return TaskError(ErrorKind.PERSISTENCE_FAILURE, detail)
