from dataclasses import dataclass, field
from typing import Any

from pyresults import Err, Ok, Result

from brewplan.core.errors import ErrorKind, TaskError
from brewplan.core.models import Category, Priority, Task, TaskType, validate_fields
from brewplan.core.validate import detect_cycles
from brewplan.util.ids import gen_task_id
from brewplan.util.time import now_iso


@dataclass
class TaskTemplate:
    """A reusable task blueprint. `dependencies` hold template ids."""

    id: str
    title: str
    description: str
    category: Category
    estimated_duration: int
    priority: Priority = "medium"
    dependencies: list[str] = field(default_factory=list)
    task_type: TaskType | None = None
    note: str = ""

    def fields(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "estimated_duration": self.estimated_duration,
            "priority": self.priority,
            "task_type": self.task_type,
            "note": self.note,
        }

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "TaskTemplate":
        return TaskTemplate(**d)


def instantiate(plan_id: str, templates: list[TaskTemplate]) -> Result[list[Task], TaskError]:
    """Build fresh pending tasks for plan_id from templates.

    Template dependencies are remapped to the new task ids. The template
    graph must be closed (no reference outside `templates`) and acyclic.
    """
    by_template_id: dict[str, TaskTemplate] = {}
    for tmpl in templates:
        if tmpl.id in by_template_id:
            _msg = f"Duplicate template id: {tmpl.id}"
            return Err(TaskError(ErrorKind.INVALID_FIELD, _msg))
        by_template_id[tmpl.id] = tmpl

    for tmpl in templates:
        unknown = [dep for dep in tmpl.dependencies if dep not in by_template_id]
        if unknown:
            _msg = f"Template {tmpl.id} depends on unknown template(s): {', '.join(unknown)}"
            return Err(TaskError(ErrorKind.UNKNOWN_DEPENDENCY, _msg))

    id_map: dict[str, str] = {tmpl.id: gen_task_id() for tmpl in templates}
    now = now_iso()
    tasks: list[Task] = []
    for tmpl in templates:
        checked = validate_fields(tmpl.fields())
        if checked.is_err():
            _msg = f"Template {tmpl.id}: {checked.unwrap_err().detail}"
            return Err(TaskError(ErrorKind.INVALID_FIELD, _msg))
        fields = checked.unwrap()
        tasks.append(
            Task(
                id=id_map[tmpl.id],
                plan_id=plan_id,
                dependencies=[id_map[dep] for dep in dict.fromkeys(tmpl.dependencies)],
                created_at=now,
                updated_at=now,
                **fields,
            ),
        )

    cycles = detect_cycles({t.id: t for t in tasks})
    if cycles:
        reverse = {new: old for old, new in id_map.items()}
        cycle = [reverse[tid] for tid in cycles[0]]
        _msg = f"Template dependency cycle: {' -> '.join(cycle)}"
        return Err(TaskError(ErrorKind.CYCLIC_DEPENDENCY, _msg, cycle=cycle))

    return Ok(tasks)
