from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any, Literal, get_args

from pyresults import Err, Ok, Result

from brewplan.core.errors import TaskError, invalid_field
from brewplan.util.time import now_iso, parse_due_date

Category = Literal["setup", "production", "sales", "inventory", "maintenance", "training"]
Priority = Literal["low", "medium", "high"]
Status = Literal["pending", "in-progress", "completed", "cancelled"]
TaskType = Literal[
    "warehouse-batches",
    "ingredient-purchases",
    "production-batches",
    "sales-records",
    "product-creation",
]

CATEGORIES: tuple[str, ...] = get_args(Category)
PRIORITIES: tuple[str, ...] = get_args(Priority)
STATUSES: tuple[str, ...] = get_args(Status)
TASK_TYPES: tuple[str, ...] = get_args(TaskType)

STATUS_LABELS: dict[str, str] = {
    "pending": "Not Started",
    "in-progress": "In Progress",
    "completed": "Completed",
    "cancelled": "Cancelled",
}

TASK_TYPE_ROUTES: dict[str, str] = {
    "warehouse-batches": "/warehouse",
    "ingredient-purchases": "/ingredients",
    "production-batches": "/production",
    "sales-records": "/operations",
    "product-creation": "/products",
}

TASK_TYPE_LABELS: dict[str, str] = {
    "warehouse-batches": "Warehouse Batches",
    "ingredient-purchases": "Ingredient Purchases",
    "production-batches": "Production Batches",
    "sales-records": "Sales Records",
    "product-creation": "Product Creation",
}


@dataclass
class Task:
    id: str
    plan_id: str
    title: str
    description: str
    category: Category
    estimated_duration: int
    priority: Priority = "medium"
    status: Status = "pending"
    dependencies: list[str] = field(default_factory=list)
    actual_duration: int | None = None
    task_type: TaskType | None = None
    note: str = ""
    assigned_to: str | None = None
    due_date: str | None = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "Task":
        d = dict(d)
        d["dependencies"] = list(d.get("dependencies") or [])
        return Task(**d)

    @property
    def status_label(self) -> str:
        return STATUS_LABELS[self.status]

    @property
    def route(self) -> str | None:
        """Navigation target of the linked subsystem, if any."""
        if self.task_type is None:
            return None
        return TASK_TYPE_ROUTES[self.task_type]

    @property
    def task_type_label(self) -> str | None:
        if self.task_type is None:
            return None
        return TASK_TYPE_LABELS[self.task_type]


# ---- field validation ------------------------------------------------------

REQUIRED_FIELDS: tuple[str, ...] = ("title", "description", "category", "estimated_duration")
OPTIONAL_FIELDS: tuple[str, ...] = (
    "priority",
    "status",
    "dependencies",
    "actual_duration",
    "task_type",
    "note",
    "assigned_to",
    "due_date",
)
READ_ONLY_FIELDS: tuple[str, ...] = ("id", "plan_id", "created_at", "updated_at", "completed_at")


def _text(value: Any) -> Result[Any, str]:
    if not isinstance(value, str) or len(value.strip()) == 0:
        return Err("must be non-empty text")
    return Ok(value.strip())


def _optional_text(value: Any) -> Result[Any, str]:
    if value is None:
        return Ok(None)
    if not isinstance(value, str):
        return Err("must be text")
    return Ok(value.strip() or None)


def _note(value: Any) -> Result[Any, str]:
    if value is None:
        return Ok("")
    if not isinstance(value, str):
        return Err("must be text")
    return Ok(value)


def _positive_int(value: Any) -> Result[Any, str]:
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return Err("must be a positive integer (minutes)")
    return Ok(value)


def _optional_positive_int(value: Any) -> Result[Any, str]:
    if value is None:
        return Ok(None)
    return _positive_int(value)


def _one_of(choices: tuple[str, ...]) -> Callable[[Any], Result[Any, str]]:
    def check(value: Any) -> Result[Any, str]:
        if value not in choices:
            return Err(f"must be one of {', '.join(choices)}")
        return Ok(value)

    return check


def _optional_one_of(choices: tuple[str, ...]) -> Callable[[Any], Result[Any, str]]:
    check = _one_of(choices)

    def optional_check(value: Any) -> Result[Any, str]:
        if value is None:
            return Ok(None)
        return check(value)

    return optional_check


def _dependency_ids(value: Any) -> Result[Any, str]:
    if value is None:
        return Ok([])
    if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
        return Err("must be a collection of task ids")
    ids: list[str] = []
    for tid in value:
        if not isinstance(tid, str) or len(tid.strip()) == 0:
            return Err(f"invalid task id: {tid!r}")
        ids.append(tid.strip())
    # set semantics, first occurrence wins
    return Ok(list(dict.fromkeys(ids)))


def _due_date(value: Any) -> Result[Any, str]:
    if value is None:
        return Ok(None)
    if not isinstance(value, str):
        return Err("must be an ISO-8601 date")
    return parse_due_date(value)


FIELD_VALIDATORS: dict[str, Callable[[Any], Result[Any, str]]] = {
    "title": _text,
    "description": _text,
    "category": _one_of(CATEGORIES),
    "estimated_duration": _positive_int,
    "priority": _one_of(PRIORITIES),
    "status": _one_of(STATUSES),
    "dependencies": _dependency_ids,
    "actual_duration": _optional_positive_int,
    "task_type": _optional_one_of(TASK_TYPES),
    "note": _note,
    "assigned_to": _optional_text,
    "due_date": _due_date,
}


def validate_fields(fields: dict[str, Any], *, partial: bool = False) -> Result[dict[str, Any], TaskError]:
    """Check the shape of task fields and return them normalised.

    With partial=False every required field must be present (creation).
    With partial=True only the given fields are checked (update).
    Graph constraints (existence, cycles) are not checked here.
    """
    for name in fields:
        if name in READ_ONLY_FIELDS:
            return Err(invalid_field(f"{name} is read-only"))
        if name not in FIELD_VALIDATORS:
            return Err(invalid_field(f"unknown field: {name}"))

    if not partial:
        missing = [name for name in REQUIRED_FIELDS if name not in fields]
        if missing:
            return Err(invalid_field(f"missing required field(s): {', '.join(missing)}"))

    normalised: dict[str, Any] = {}
    for name, value in fields.items():
        match FIELD_VALIDATORS[name](value):
            case Ok(v):
                normalised[name] = v
            case Err(e):
                return Err(invalid_field(f"{name} {e}"))
    return Ok(normalised)
