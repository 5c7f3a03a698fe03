from abc import ABC, abstractmethod

from pyresults import Result

from brewplan.core.models import Task
from brewplan.util.dirs import load_env


class PlanStore(ABC):
    """Abstract base class for plan task storage.

    The task engine only talks to storage through this interface.
    Writes stay pending until save() makes them durable and commit()
    accepts them; rollback() discards whatever was not committed.

    Public API:
        - load(): read the backing storage
        - save(): write pending state to the backing storage
        - commit(): accept pending writes
        - rollback(): discard pending writes
        - load_tasks(): all tasks of one plan
        - persist_task(): insert or replace a task
        - persist_deletion(): remove a task
        - find_plan_id(): the plan a task belongs to
    """

    def __init__(self, data_path: str | None = None) -> None:
        self.data_path = data_path or load_env()["DATA_PATH"]

    @abstractmethod
    def load(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def save(self) -> None:
        """Make pending state durable.

        Raises OSError (or a backend error) when the backing storage
        cannot be written.
        """
        raise NotImplementedError

    @abstractmethod
    def commit(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def load_tasks(self, plan_id: str) -> Result[list[Task], str]:
        """All tasks of plan_id in stored order. An unknown plan has no tasks.

        Returns:
            Ok(list[Task]): copies; mutating them does not touch the store
            Err(str): backend failure
        """
        raise NotImplementedError

    @abstractmethod
    def persist_task(self, task: Task) -> Result[None, str]:
        """Insert the task, or replace the stored task with the same id.

        Returns:
            Ok(None): on success
            Err(str): backend failure, or the id exists under another plan
        """
        raise NotImplementedError

    @abstractmethod
    def persist_deletion(self, task_id: str) -> Result[None, str]:
        """Remove a task. Dependency lists of other tasks are not touched.

        Returns:
            Ok(None): on success
            Err(str): task not found, or backend failure
        """
        raise NotImplementedError

    @abstractmethod
    def find_plan_id(self, task_id: str) -> Result[str | None, str]:
        """Look up the owning plan of a task.

        Returns:
            Ok(str): plan id
            Ok(None): no such task
            Err(str): backend failure
        """
        raise NotImplementedError
