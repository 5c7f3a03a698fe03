"""Status state machine for plan tasks.

Every status is reachable from every other one, but transitions are gated
and annotated:

- entering in-progress requires every dependency to be completed
- leaving completed while dependents exist is a cascading transition and
  must be confirmed by the caller
- a transition to the current status is rejected

`plan_transition` only decides; `apply_transition` produces the new task.
"""

import copy
from dataclasses import dataclass, field

from pyresults import Err, Ok, Result

from brewplan.core.errors import ErrorKind, TaskError, invalid_field
from brewplan.core.models import STATUSES, Status, Task
from brewplan.core.resolver import blocking_dependencies, can_start, dependents
from brewplan.util.time import now_iso


@dataclass(frozen=True)
class Transition:
    task_id: str
    source: Status
    target: Status
    cascading: bool = False
    affected: list[Task] = field(default_factory=list)
    actual_duration: int | None = None

    @property
    def sets_completed_at(self) -> bool:
        return self.target == "completed"

    @property
    def clears_completed_at(self) -> bool:
        return self.target != "completed"


def plan_transition(
    task: Task,
    new_status: str,
    all_tasks: list[Task],
    *,
    actual_duration: int | None = None,
) -> Result[Transition, TaskError]:
    """Validate a status change against all_tasks and describe its consequences."""
    if new_status not in STATUSES:
        return Err(invalid_field(f"status must be one of {', '.join(STATUSES)}"))
    if actual_duration is not None:
        if new_status != "completed":
            return Err(invalid_field("actual_duration can only be recorded on completion"))
        if isinstance(actual_duration, bool) or not isinstance(actual_duration, int) or actual_duration <= 0:
            return Err(invalid_field("actual_duration must be a positive integer (minutes)"))

    if new_status == task.status:
        _msg = f"Task {task.id} is already {task.status}"
        return Err(TaskError(ErrorKind.ILLEGAL_TRANSITION, _msg))

    if new_status == "in-progress" and not can_start(task, all_tasks):
        blocking = blocking_dependencies(task, all_tasks)
        _msg = f"Task {task.id} cannot start: waiting on {', '.join(blocking)}"
        return Err(TaskError(ErrorKind.ILLEGAL_TRANSITION, _msg))

    affected: list[Task] = []
    if task.status == "completed":
        affected = dependents(task.id, all_tasks)

    return Ok(
        Transition(
            task_id=task.id,
            source=task.status,
            target=new_status,  # type: ignore[arg-type]
            cascading=len(affected) > 0,
            affected=affected,
            actual_duration=actual_duration,
        ),
    )


def apply_transition(task: Task, transition: Transition, *, at: str | None = None) -> Task:
    """Return a copy of task with the transition applied."""
    if transition.task_id != task.id or transition.source != task.status:
        _msg = f"Stale transition for task {task.id}: {transition.source} -> {transition.target}"
        raise ValueError(_msg)

    ts = at or now_iso()
    updated = copy.deepcopy(task)
    updated.status = transition.target
    updated.updated_at = ts
    if transition.sets_completed_at:
        updated.completed_at = ts
        if transition.actual_duration is not None:
            updated.actual_duration = transition.actual_duration
    elif transition.clears_completed_at:
        updated.completed_at = None
        updated.actual_duration = None
    return updated
