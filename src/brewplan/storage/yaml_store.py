import copy
from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pyresults import Err, Ok, Result

from brewplan.core.models import Task
from brewplan.storage.base import PlanStore
from brewplan.util.logger import setup_logger

logger = setup_logger("brewplan", is_stream=True, is_file=True)


class StoreToYAML(PlanStore):
    """YAML file backend.

    The whole document is held in memory as {plan_id: {task_id: Task}}.
    Writes go to a working copy; save() dumps the working copy and commit()
    makes it the state rollback() returns to.
    """

    def __init__(self, data_path: str | None = None) -> None:
        super().__init__(data_path)
        self._plans: dict[str, dict[str, Task]] = {}
        self._tmp_plans: dict[str, dict[str, Task]] = {}

    # ---- basic IO ----

    def load(self) -> None:
        _path = Path(self.data_path)
        _plans: dict[str, dict[str, Task]] = {}
        if _path.exists():
            with _path.open(encoding="utf-8") as f:
                try:
                    raw = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    _msg = f"Failed to load YAML file: {e}"
                    logger.exception(_msg)
                    raise
            for plan_id, tasks in (raw.get("plans") or {}).items():
                _plans[plan_id] = {tid: Task.from_dict(td) for tid, td in (tasks or {}).items()}

        # treat read content as committed state
        self._plans = copy.deepcopy(_plans)
        self._tmp_plans = copy.deepcopy(_plans)

    def save(self) -> None:
        raw = {
            "plans": {
                plan_id: {tid: t.to_dict() for tid, t in tasks.items()}
                for plan_id, tasks in self._tmp_plans.items()
            },
        }
        _path = Path(self.data_path)
        with _path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(raw, f, allow_unicode=True, sort_keys=False)

    def commit(self) -> None:
        self._plans = copy.deepcopy(self._tmp_plans)

    def rollback(self) -> None:
        self._tmp_plans = copy.deepcopy(self._plans)

    # ---- plan collaborator interface ----

    def load_tasks(self, plan_id: str) -> Result[list[Task], str]:
        tasks = self._tmp_plans.get(plan_id, {})
        return Ok[list[Task], str]([copy.deepcopy(t) for t in tasks.values()])

    def persist_task(self, task: Task) -> Result[None, str]:
        owner = self._owner_of(task.id)
        if owner is not None and owner != task.plan_id:
            _msg = f"Task {task.id} already belongs to plan {owner}"
            logger.error(_msg)
            return Err[None, str](_msg)
        self._tmp_plans.setdefault(task.plan_id, {})[task.id] = copy.deepcopy(task)
        return Ok[None, str](None)

    def persist_deletion(self, task_id: str) -> Result[None, str]:
        owner = self._owner_of(task_id)
        if owner is None:
            _msg = f"Task not found: {task_id}"
            logger.error(_msg)
            return Err[None, str](_msg)
        del self._tmp_plans[owner][task_id]
        return Ok[None, str](None)

    def find_plan_id(self, task_id: str) -> Result[str | None, str]:
        return Ok[str | None, str](self._owner_of(task_id))

    def _owner_of(self, task_id: str) -> str | None:
        for plan_id, tasks in self._tmp_plans.items():
            if task_id in tasks:
                return plan_id
        return None
