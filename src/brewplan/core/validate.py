from collections.abc import Iterator

from brewplan.core.models import Task

WHITE = 0
GRAY = 1
BLACK = 2


def detect_cycles(tasks: dict[str, Task]) -> list[list[str]]:
    """Detect cycles in the dependency graph using DFS.

    Returns a list of cycles, each a list of task IDs where every element
    depends on the next one and the first ID is repeated at the end.
    Dependencies outside `tasks` are ignored. Iterative, so chain depth is not
    bounded by the recursion limit.
    """
    cycles: list[list[str]] = []
    color: dict[str, int] = dict.fromkeys(tasks.keys(), WHITE)

    for root in sorted(tasks):
        if color[root] != WHITE:
            continue
        color[root] = GRAY
        path: list[str] = [root]
        stack: list[Iterator[str]] = [iter(tasks[root].dependencies)]

        while stack:
            dep_id = next(stack[-1], None)
            if dep_id is None:
                # all dependencies of path[-1] explored
                stack.pop()
                color[path.pop()] = BLACK
                continue
            if dep_id not in tasks:
                continue
            if color[dep_id] == GRAY:
                cycles.append([*path[path.index(dep_id) :], dep_id])
            elif color[dep_id] == WHITE:
                color[dep_id] = GRAY
                path.append(dep_id)
                stack.append(iter(tasks[dep_id].dependencies))

    return cycles


def detect_dangling(tasks: dict[str, Task]) -> list[tuple[str, str, str]]:
    """Detect dependency references that should never have been stored.

    Returns a list of (task_id, issue_type, related_id) tuples.
    issue_type can be:
    - "self_dependency": task_id lists itself as a dependency
    - "missing_dependency": related_id is not a known task
    - "foreign_plan": related_id belongs to another plan
    """
    issues: list[tuple[str, str, str]] = []

    for tid, t in tasks.items():
        for dep_id in t.dependencies:
            if dep_id == tid:
                issues.append((tid, "self_dependency", dep_id))
            elif dep_id not in tasks:
                issues.append((tid, "missing_dependency", dep_id))
            elif tasks[dep_id].plan_id != t.plan_id:
                issues.append((tid, "foreign_plan", dep_id))

    return issues
