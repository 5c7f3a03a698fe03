import sqlite3

from pyresults import Err, Ok, Result

from brewplan.core.models import Task
from brewplan.storage.base import PlanStore
from brewplan.util.logger import setup_logger

logger = setup_logger("brewplan", is_stream=True, is_file=True)

TASK_COLUMNS: tuple[str, ...] = (
    "id",
    "plan_id",
    "title",
    "description",
    "category",
    "estimated_duration",
    "priority",
    "status",
    "actual_duration",
    "task_type",
    "note",
    "assigned_to",
    "due_date",
    "created_at",
    "updated_at",
    "completed_at",
)


class StoreToSQLite(PlanStore):
    """SQLite3 backend.

    - tasks table: one row per task
    - dependencies table: task_id depends on depends_on_id, with position
      keeping the list order
    """

    def __init__(self, data_path: str | None = None) -> None:
        super().__init__(data_path)
        self._conn: sqlite3.Connection | None = None

    # ---- low-level helpers ---------------------------------------------

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            # callers serialise access; the connection may be used from any thread
            self._conn = sqlite3.connect(self.data_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def _init_schema(self) -> None:
        c = self.conn
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                plan_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                category TEXT NOT NULL,
                estimated_duration INTEGER NOT NULL,
                priority TEXT NOT NULL,
                status TEXT NOT NULL,
                actual_duration INTEGER,
                task_type TEXT,
                note TEXT NOT NULL DEFAULT '',
                assigned_to TEXT,
                due_date TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                completed_at TEXT
            )
            """,
        )
        c.execute("CREATE INDEX IF NOT EXISTS idx_tasks_plan_id ON tasks(plan_id)")
        # depends_on_id has no foreign key: a batch may reference a task
        # that is inserted later in the same transaction
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS dependencies (
                task_id TEXT NOT NULL,
                depends_on_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                PRIMARY KEY (task_id, depends_on_id),
                FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
            )
            """,
        )
        c.commit()

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            plan_id=row["plan_id"],
            title=row["title"],
            description=row["description"],
            category=row["category"],
            estimated_duration=row["estimated_duration"],
            priority=row["priority"],
            status=row["status"],
            dependencies=[],  # filled from the dependencies table
            actual_duration=row["actual_duration"],
            task_type=row["task_type"],
            note=row["note"] or "",
            assigned_to=row["assigned_to"],
            due_date=row["due_date"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            completed_at=row["completed_at"],
        )

    # ---- basic IO -------------------------------------------------------

    def load(self) -> None:
        """Open the connection and create the schema.

        Unlike the YAML backend nothing is cached; every call queries.
        """
        self._init_schema()

    def save(self) -> None:
        self.conn.commit()

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        try:
            self.conn.rollback()
        except sqlite3.Error as e:
            msg = f"Error on rollback(): {e!s}"
            logger.exception(msg)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ---- plan collaborator interface -----------------------------------

    def load_tasks(self, plan_id: str) -> Result[list[Task], str]:
        c = self.conn
        try:
            tasks: dict[str, Task] = {}
            for row in c.execute("SELECT * FROM tasks WHERE plan_id = ? ORDER BY rowid", (plan_id,)):
                t = self._row_to_task(row)
                tasks[t.id] = t

            for row in c.execute(
                """
                SELECT d.task_id, d.depends_on_id FROM dependencies d
                JOIN tasks t ON t.id = d.task_id
                WHERE t.plan_id = ?
                ORDER BY d.task_id, d.position
                """,
                (plan_id,),
            ):
                t = tasks.get(row["task_id"])
                if t is not None:
                    t.dependencies.append(row["depends_on_id"])
            return Ok(list(tasks.values()))
        except sqlite3.Error as e:
            msg = f"Error (load_tasks): {e!s}"
            logger.exception(msg)
            return Err(msg)

    def persist_task(self, task: Task) -> Result[None, str]:
        c = self.conn
        try:
            cur = c.execute("SELECT plan_id FROM tasks WHERE id = ?", (task.id,))
            row = cur.fetchone()
            if row is not None and row["plan_id"] != task.plan_id:
                msg = f"Task {task.id} already belongs to plan {row['plan_id']}"
                logger.error(msg)
                return Err(msg)

            columns = ", ".join(TASK_COLUMNS)
            placeholders = ", ".join("?" for _ in TASK_COLUMNS)
            updates = ", ".join(f"{col} = excluded.{col}" for col in TASK_COLUMNS if col != "id")
            c.execute(
                f"INSERT INTO tasks ({columns}) VALUES ({placeholders}) "  # noqa: S608
                f"ON CONFLICT(id) DO UPDATE SET {updates}",
                tuple(getattr(task, col) for col in TASK_COLUMNS),
            )
            c.execute("DELETE FROM dependencies WHERE task_id = ?", (task.id,))
            c.executemany(
                "INSERT INTO dependencies (task_id, depends_on_id, position) VALUES (?, ?, ?)",
                [(task.id, dep_id, pos) for pos, dep_id in enumerate(task.dependencies)],
            )
            return Ok(None)
        except sqlite3.Error as e:
            msg = f"Error (persist_task): {e!s}"
            logger.exception(msg)
            return Err(msg)

    def persist_deletion(self, task_id: str) -> Result[None, str]:
        c = self.conn
        try:
            cur = c.execute("SELECT 1 FROM tasks WHERE id = ?", (task_id,))
            if cur.fetchone() is None:
                msg = f"Task not found: {task_id}"
                logger.error(msg)
                return Err(msg)
            # ON DELETE CASCADE would do this too; be explicit
            c.execute("DELETE FROM dependencies WHERE task_id = ?", (task_id,))
            c.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return Ok(None)
        except sqlite3.Error as e:
            msg = f"Error (persist_deletion): {e!s}"
            logger.exception(msg)
            return Err(msg)

    def find_plan_id(self, task_id: str) -> Result[str | None, str]:
        try:
            row = self.conn.execute("SELECT plan_id FROM tasks WHERE id = ?", (task_id,)).fetchone()
        except sqlite3.Error as e:
            msg = f"Error (find_plan_id): {e!s}"
            logger.exception(msg)
            return Err(msg)
        return Ok(None if row is None else row["plan_id"])
