from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import TYPE_CHECKING, Any, TypeVar

from pyresults import Err, Ok, Result

from brewplan.core.errors import ErrorKind, TaskError, invalid_field, not_found, persistence_failure
from brewplan.core.models import Task, validate_fields
from brewplan.core.resolver import dependents, find_cycle_path, missing_dependencies, topological_order
from brewplan.core.status import apply_transition, plan_transition
from brewplan.core.templates import TaskTemplate, instantiate
from brewplan.core.validate import detect_cycles, detect_dangling
from brewplan.storage import get_store
from brewplan.util.ids import gen_task_id
from brewplan.util.logger import setup_logger
from brewplan.util.time import now_iso

if TYPE_CHECKING:
    from brewplan.storage.base import PlanStore

logger = setup_logger("brewplan", is_stream=True, is_file=True)

T = TypeVar("T")

COPY_SUFFIX = " (Copy)"


class TaskCoordinator:
    """Entry point for every task mutation of a plan.

    Each operation validates shape, checks the dependency graph, runs status
    changes through the state machine and only then writes to the store.
    A failed validation never writes anything. Mutations on the same plan
    are serialised; different plans proceed independently.

    The store must have been load()-ed by the caller.
    """

    def __init__(self, store: PlanStore | None = None) -> None:
        self._store = store or get_store()
        # plan_id -> [lock, number of callers holding or waiting for it]
        self._locks: dict[str, list[Any]] = {}
        self._locks_guard = threading.Lock()
        # commit/rollback act on the whole store, not on one plan
        self._io_lock = threading.RLock()

    # ---- internal helpers --------------------------------------------------

    @contextmanager
    def _plan_lock(self, plan_id: str) -> Iterator[None]:
        """Serialise work on one plan. Entries live only while in use."""
        with self._locks_guard:
            entry = self._locks.setdefault(plan_id, [threading.RLock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[plan_id]

    def _load(self, plan_id: str) -> Result[list[Task], TaskError]:
        with self._io_lock:
            loaded = self._store.load_tasks(plan_id)
        match loaded:
            case Ok(tasks):
                return Ok(tasks)
            case Err(e):
                return Err(persistence_failure(e))
            case _:
                return Err(persistence_failure("Unexpected error"))

    def _locate(self, task_id: str) -> Result[str, TaskError]:
        with self._io_lock:
            found = self._store.find_plan_id(task_id)
        match found:
            case Ok(None):
                return Err(not_found(task_id))
            case Ok(plan_id):
                return Ok(plan_id)
            case Err(e):
                return Err(persistence_failure(e))
            case _:
                return Err(persistence_failure("Unexpected error"))

    def _with_task(
        self,
        task_id: str,
        action: Callable[[list[Task], Task], Result[T, TaskError]],
    ) -> Result[T, TaskError]:
        """Run action on a consistent snapshot of the task's plan, under the plan lock."""
        located = self._locate(task_id)
        if located.is_err():
            return Err(located.unwrap_err())
        plan_id: str = located.unwrap()

        with self._plan_lock(plan_id):
            loaded = self._load(plan_id)
            if loaded.is_err():
                return Err(loaded.unwrap_err())
            tasks: list[Task] = loaded.unwrap()
            task = next((t for t in tasks if t.id == task_id), None)
            if task is None:
                # moved or deleted between lookup and lock
                return Err(not_found(task_id))
            return action(tasks, task)

    def _flush(self, writes: list[Task], deletions: list[str] | None = None) -> Result[None, TaskError]:
        """Persist writes and deletions as one unit, rolling back on failure."""
        with self._io_lock:
            for t in writes:
                res = self._store.persist_task(t)
                if res.is_err():
                    self._store.rollback()
                    return Err(persistence_failure(res.unwrap_err()))
            for tid in deletions or []:
                res = self._store.persist_deletion(tid)
                if res.is_err():
                    self._store.rollback()
                    return Err(persistence_failure(res.unwrap_err()))
            try:
                self._store.save()
                self._store.commit()
            except Exception as e:  # noqa: BLE001
                _msg = f"Failed to save: {e!s}"
                logger.exception(_msg)
                self._store.rollback()
                return Err(persistence_failure(_msg))
        return Ok(None)

    @staticmethod
    def _check_dependencies(
        task_id: str,
        deps: list[str],
        tasks: list[Task],
    ) -> Result[None, TaskError]:
        missing = missing_dependencies(deps, tasks)
        if missing:
            _msg = f"Unknown dependency id(s): {', '.join(missing)}"
            logger.warning(_msg)
            return Err(TaskError(ErrorKind.UNKNOWN_DEPENDENCY, _msg))
        cycle = find_cycle_path(task_id, deps, tasks)
        if cycle is not None:
            _msg = f"Dependency cycle: {' -> '.join(cycle)}"
            logger.warning(_msg)
            return Err(TaskError(ErrorKind.CYCLIC_DEPENDENCY, _msg, cycle=cycle))
        return Ok(None)

    @staticmethod
    def _confirmation_required(task: Task, affected: list[Task], action: str) -> TaskError:
        names = ", ".join(t.title for t in affected)
        _msg = f"{action} {task.id} affects {len(affected)} dependent task(s): {names}"
        logger.info(_msg)
        return TaskError(ErrorKind.CONFIRMATION_REQUIRED, _msg, affected=affected)

    # ---- queries -----------------------------------------------------------

    def list_tasks(self, plan_id: str, *, topo: bool = False) -> Result[list[Task], TaskError]:
        """All tasks of a plan, in stored order or dependency order."""
        loaded = self._load(plan_id)
        if loaded.is_err() or not topo:
            return loaded
        return topological_order(loaded.unwrap())

    def get_task(self, task_id: str) -> Result[Task, TaskError]:
        return self._with_task(task_id, lambda _tasks, task: Ok(task))

    def check_integrity(self, plan_id: str) -> Result[list[tuple[str, str, str]], TaskError]:
        """Report stored state that mutations should have prevented.

        Returns (task_id, issue_type, related) tuples; see detect_dangling.
        Cycles are reported as (first_id, "cycle", "a -> b -> a").
        """
        loaded = self._load(plan_id)
        if loaded.is_err():
            return Err(loaded.unwrap_err())
        by_id = {t.id: t for t in loaded.unwrap()}
        issues = detect_dangling(by_id)
        issues.extend((cycle[0], "cycle", " -> ".join(cycle)) for cycle in detect_cycles(by_id))
        for issue in issues:
            logger.warning("Integrity issue in plan %s: %s", plan_id, issue)
        return Ok(issues)

    # ---- create / duplicate ------------------------------------------------

    def create_task(self, plan_id: str, fields: dict[str, Any]) -> Result[Task, TaskError]:
        """Add a new pending task to a plan.

        Given dependencies must exist in the same plan and keep the graph acyclic.
        """
        if not isinstance(plan_id, str) or len(plan_id.strip()) == 0:
            return Err(invalid_field("plan_id must be non-empty text"))

        checked = validate_fields(fields)
        if checked.is_err():
            logger.warning("Rejected new task: %s", checked.unwrap_err())
            return Err(checked.unwrap_err())
        values: dict[str, Any] = checked.unwrap()

        if values.pop("status", "pending") != "pending":
            return Err(invalid_field("status of a new task must be pending"))
        if values.pop("actual_duration", None) is not None:
            return Err(invalid_field("actual_duration can only be recorded on completion"))

        with self._plan_lock(plan_id):
            loaded = self._load(plan_id)
            if loaded.is_err():
                return Err(loaded.unwrap_err())
            tasks: list[Task] = loaded.unwrap()

            tid = gen_task_id()
            deps: list[str] = values.pop("dependencies", [])
            dep_check = self._check_dependencies(tid, deps, tasks)
            if dep_check.is_err():
                return Err(dep_check.unwrap_err())

            now = now_iso()
            task = Task(id=tid, plan_id=plan_id, dependencies=deps, created_at=now, updated_at=now, **values)
            flushed = self._flush([task])
            if flushed.is_err():
                return Err(flushed.unwrap_err())

        logger.info("Created task %s in plan %s", task.id, plan_id)
        return Ok(task)

    def duplicate_task(self, task_id: str, *, title_suffix: str = COPY_SUFFIX) -> Result[Task, TaskError]:
        """Copy a task into the same plan as a fresh pending task without dependencies."""

        def action(_tasks: list[Task], task: Task) -> Result[Task, TaskError]:
            now = now_iso()
            dup = replace(
                copy.deepcopy(task),
                id=gen_task_id(),
                title=f"{task.title}{title_suffix}",
                status="pending",
                dependencies=[],
                actual_duration=None,
                completed_at=None,
                created_at=now,
                updated_at=now,
            )
            flushed = self._flush([dup])
            if flushed.is_err():
                return Err(flushed.unwrap_err())
            logger.info("Duplicated task %s as %s", task.id, dup.id)
            return Ok(dup)

        return self._with_task(task_id, action)

    def create_tasks_from_template(
        self,
        plan_id: str,
        templates: list[TaskTemplate],
    ) -> Result[list[Task], TaskError]:
        """Instantiate task templates into a plan, remapping their dependencies."""
        if not isinstance(plan_id, str) or len(plan_id.strip()) == 0:
            return Err(invalid_field("plan_id must be non-empty text"))

        built = instantiate(plan_id, templates)
        if built.is_err():
            logger.warning("Rejected templates for plan %s: %s", plan_id, built.unwrap_err())
            return built
        new_tasks: list[Task] = built.unwrap()

        with self._plan_lock(plan_id):
            flushed = self._flush(new_tasks)
            if flushed.is_err():
                return Err(flushed.unwrap_err())

        logger.info("Created %d task(s) from templates in plan %s", len(new_tasks), plan_id)
        return Ok(new_tasks)

    # ---- update / status ---------------------------------------------------

    def update_task(
        self,
        task_id: str,
        fields: dict[str, Any],
        *,
        confirmed: bool = False,
    ) -> Result[Task, TaskError]:
        """Edit fields of a task.

        A dependency edit is revalidated against the plan. A status edit goes
        through the state machine, including the confirmation step when it
        reverts completed work that others depend on. A status equal to the
        current one is treated as unchanged.
        """
        checked = validate_fields(fields, partial=True)
        if checked.is_err():
            logger.warning("Rejected update of %s: %s", task_id, checked.unwrap_err())
            return Err(checked.unwrap_err())
        values: dict[str, Any] = checked.unwrap()
        if not values:
            return Err(invalid_field("no fields to update"))

        def action(tasks: list[Task], task: Task) -> Result[Task, TaskError]:
            working = copy.deepcopy(task)
            new_status = values.pop("status", task.status)
            has_duration = "actual_duration" in values
            actual_duration = values.pop("actual_duration", None)

            if "dependencies" in values:
                dep_check = self._check_dependencies(task.id, values["dependencies"], tasks)
                if dep_check.is_err():
                    return Err(dep_check.unwrap_err())

            for name, value in values.items():
                setattr(working, name, value)

            now = now_iso()
            if new_status != task.status:
                graph = [working if t.id == task.id else t for t in tasks]
                planned = plan_transition(working, new_status, graph, actual_duration=actual_duration)
                if planned.is_err():
                    logger.warning("Rejected status change of %s: %s", task.id, planned.unwrap_err())
                    return Err(planned.unwrap_err())
                transition = planned.unwrap()
                if transition.cascading and not confirmed:
                    return Err(self._confirmation_required(task, transition.affected, "Reverting"))
                working = apply_transition(working, transition, at=now)
            elif has_duration:
                if task.status != "completed":
                    return Err(invalid_field("actual_duration can only be recorded on completion"))
                working.actual_duration = actual_duration

            working.updated_at = now
            flushed = self._flush([working])
            if flushed.is_err():
                return Err(flushed.unwrap_err())
            logger.info("Updated task %s (%s)", task.id, ", ".join(sorted(fields)))
            return Ok(working)

        return self._with_task(task_id, action)

    def change_status(
        self,
        task_id: str,
        new_status: str,
        *,
        confirmed: bool = False,
        actual_duration: int | None = None,
    ) -> Result[Task, TaskError]:
        """Move a task to another status.

        Reverting a completed task that has dependents first returns
        ConfirmationRequired carrying those dependents; calling again with
        confirmed=True applies it.
        """

        def action(tasks: list[Task], task: Task) -> Result[Task, TaskError]:
            planned = plan_transition(task, new_status, tasks, actual_duration=actual_duration)
            if planned.is_err():
                logger.warning("Rejected status change of %s: %s", task.id, planned.unwrap_err())
                return Err(planned.unwrap_err())
            transition = planned.unwrap()
            if transition.cascading and not confirmed:
                return Err(self._confirmation_required(task, transition.affected, "Reverting"))

            updated = apply_transition(task, transition)
            flushed = self._flush([updated])
            if flushed.is_err():
                return Err(flushed.unwrap_err())
            if transition.cascading:
                logger.warning(
                    "Task %s reverted to %s; dependents may be blocked: %s",
                    task.id,
                    transition.target,
                    ", ".join(t.id for t in transition.affected),
                )
            logger.info("Task %s: %s -> %s", task.id, transition.source, transition.target)
            return Ok(updated)

        return self._with_task(task_id, action)

    # ---- delete ------------------------------------------------------------

    def delete_task(self, task_id: str, *, force: bool = False) -> Result[list[Task], TaskError]:
        """Delete a task and strip it from every dependency list.

        With dependents present and force=False nothing is deleted and
        ConfirmationRequired lists the dependents. Returns the plan's
        remaining tasks.
        """

        def action(tasks: list[Task], task: Task) -> Result[list[Task], TaskError]:
            affected = dependents(task.id, tasks)
            if affected and not force:
                return Err(self._confirmation_required(task, affected, "Deleting"))

            now = now_iso()
            stripped: dict[str, Task] = {}
            for t in affected:
                stripped[t.id] = replace(
                    copy.deepcopy(t),
                    dependencies=[d for d in t.dependencies if d != task.id],
                    updated_at=now,
                )
            flushed = self._flush(list(stripped.values()), [task.id])
            if flushed.is_err():
                return Err(flushed.unwrap_err())

            logger.info("Deleted task %s (%d dependent(s) unlinked)", task.id, len(stripped))
            return Ok([stripped.get(t.id, t) for t in tasks if t.id != task.id])

        return self._with_task(task_id, action)
