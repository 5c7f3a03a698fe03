from brewplan.core.models import Task


def make_task(
    tid: str,
    *,
    deps: list[str] | None = None,
    status: str = "pending",
    plan_id: str = "plan-1",
    created_at: str = "2024-01-01T00:00:00",
) -> Task:
    return Task(
        id=tid,
        plan_id=plan_id,
        title=f"task {tid}",
        description=f"description of {tid}",
        category="production",
        estimated_duration=30,
        status=status,  # type: ignore[arg-type]
        dependencies=deps or [],
        created_at=created_at,
        updated_at=created_at,
        completed_at="2024-01-02T00:00:00" if status == "completed" else None,
    )


def task_fields(title: str = "Brew cold brew", **overrides: object) -> dict[str, object]:
    fields: dict[str, object] = {
        "title": title,
        "description": "Steep 12 hours",
        "category": "production",
        "estimated_duration": 60,
    }
    fields.update(overrides)
    return fields
