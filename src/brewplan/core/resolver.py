"""Pure dependency queries over an explicit task collection.

Nothing here touches storage or mutates a task. Every function takes the
whole plan's tasks as an argument, and dependency ids are resolved by lookup
against that collection.
"""

import heapq
from collections.abc import Iterable

from pyresults import Err, Ok, Result

from brewplan.core.errors import ErrorKind, TaskError
from brewplan.core.models import Task
from brewplan.core.validate import detect_cycles


def _index(all_tasks: Iterable[Task]) -> dict[str, Task]:
    return {t.id: t for t in all_tasks}


def task_sort_key(t: Task, position: int) -> tuple[str, int, str]:
    # created_at has second resolution; position in the stored order breaks ties
    return (t.created_at, position, t.id)


def can_start(task: Task, all_tasks: Iterable[Task]) -> bool:
    """True iff every dependency resolves to a completed task.

    Unknown dependency ids count as unsatisfied.
    """
    if not task.dependencies:
        return True
    by_id = _index(all_tasks)
    for dep_id in task.dependencies:
        dep = by_id.get(dep_id)
        if dep is None or dep.status != "completed":
            return False
    return True


def blocking_dependencies(task: Task, all_tasks: Iterable[Task]) -> list[str]:
    """Ids in task.dependencies that keep it from starting."""
    by_id = _index(all_tasks)
    return [
        dep_id
        for dep_id in task.dependencies
        if dep_id not in by_id or by_id[dep_id].status != "completed"
    ]


def missing_dependencies(dependencies: Iterable[str], all_tasks: Iterable[Task]) -> list[str]:
    by_id = _index(all_tasks)
    return [dep_id for dep_id in dependencies if dep_id not in by_id]


def dependents(task_id: str, all_tasks: Iterable[Task]) -> list[Task]:
    """Tasks whose dependencies contain task_id."""
    return [t for t in all_tasks if task_id in t.dependencies]


def annotate_can_start(all_tasks: Iterable[Task]) -> list[tuple[Task, bool]]:
    tasks = list(all_tasks)
    return [(t, can_start(t, tasks)) for t in tasks]


def linked_tasks(task_ids: Iterable[str], all_tasks: Iterable[Task]) -> list[Task]:
    """Read-only lookup for goal listings. Unknown ids are skipped."""
    by_id = _index(all_tasks)
    return [by_id[tid] for tid in task_ids if tid in by_id]


def topological_order(all_tasks: Iterable[Task]) -> Result[list[Task], TaskError]:
    """Order tasks so each one comes after all of its dependencies.

    Ready tasks are emitted by created_at, then by their position in
    all_tasks (stores return insertion order), so tasks created in the same
    second keep creation order. Dependency ids outside the collection are
    ignored.
    A cycle is reported as CyclicDependency instead of a partial order.
    """
    by_id = _index(all_tasks)
    position = {tid: i for i, tid in enumerate(by_id)}

    indeg: dict[str, int] = dict.fromkeys(by_id, 0)
    children: dict[str, list[str]] = {tid: [] for tid in by_id}
    for t in by_id.values():
        for dep_id in dict.fromkeys(t.dependencies):
            if dep_id in by_id:
                indeg[t.id] += 1
                children[dep_id].append(t.id)

    heap: list[tuple[tuple[str, int, str], str]] = [
        (task_sort_key(by_id[tid], position[tid]), tid) for tid, d in indeg.items() if d == 0
    ]
    heapq.heapify(heap)
    result: list[Task] = []

    while heap:
        _, u = heapq.heappop(heap)
        result.append(by_id[u])
        for child_id in children[u]:
            indeg[child_id] -= 1
            if indeg[child_id] == 0:
                heapq.heappush(heap, (task_sort_key(by_id[child_id], position[child_id]), child_id))

    if len(result) < len(by_id):
        in_result = {t.id for t in result}
        remains = {tid: t for tid, t in by_id.items() if tid not in in_result}
        cycles = detect_cycles(remains)
        cycle = cycles[0] if cycles else sorted(remains)
        _msg = f"Dependency cycle detected: {' -> '.join(cycle)}"
        return Err(TaskError(ErrorKind.CYCLIC_DEPENDENCY, _msg, cycle=cycle))

    return Ok(result)


def find_cycle_path(
    task_id: str,
    proposed_dependencies: Iterable[str],
    all_tasks: Iterable[Task],
) -> list[str] | None:
    """Return the edge chain that would close a cycle, or None.

    The chain reads as "task_id depends on ... depends on task_id".
    """
    proposed = list(proposed_dependencies)
    if task_id in proposed:
        return [task_id, task_id]

    by_id = _index(all_tasks)
    for start in proposed:
        seen: set[str] = set[str]()
        stack: list[tuple[str, list[str]]] = [(start, [task_id, start])]
        while stack:
            cur, path = stack.pop()
            if cur == task_id:
                return path
            if cur in seen:
                continue
            seen.add(cur)
            t = by_id.get(cur)
            if t is None:
                continue
            stack.extend((dep_id, [*path, dep_id]) for dep_id in t.dependencies)
    return None


def would_create_cycle(
    task_id: str,
    proposed_dependencies: Iterable[str],
    all_tasks: Iterable[Task],
) -> bool:
    """Check whether giving task_id these dependencies closes a cycle.

    Direct self-dependency counts. Otherwise each proposed dependency is
    walked through existing dependency edges looking for task_id.
    """
    return find_cycle_path(task_id, proposed_dependencies, all_tasks) is not None
