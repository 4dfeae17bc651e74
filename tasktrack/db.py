"""SQLite database operations for the task tracker."""

import functools
import logging
import re
import sqlite3
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from .errors import (
    AmbiguousError,
    ConstraintError,
    ContentionError,
    NotFoundError,
    ValidationError,
)
from .models import (
    Label,
    Priority,
    Project,
    Task,
    TaskCreate,
    TaskFilter,
    TaskUpdate,
    utcnow,
)

logger = logging.getLogger(__name__)

MIN_PREFIX_LENGTH = 6
DEFAULT_PROJECT_NAME = "default"

_PREFIX_RE = re.compile(r"^[0-9a-f-]+$")
# Keeps IN (...) lists under SQLite's bound-parameter limit.
_IN_CHUNK = 500

SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT UNIQUE NOT NULL,
    directory_path TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    description TEXT NOT NULL,
    done INTEGER NOT NULL DEFAULT 0,
    priority TEXT,
    notes TEXT,
    due_date TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    completed_at TEXT,
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS labels (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL
);

CREATE TABLE IF NOT EXISTS task_labels (
    task_id TEXT NOT NULL,
    label_id INTEGER NOT NULL,
    PRIMARY KEY (task_id, label_id),
    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE,
    FOREIGN KEY (label_id) REFERENCES labels(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks(project_id);
CREATE INDEX IF NOT EXISTS idx_tasks_done ON tasks(done);
CREATE INDEX IF NOT EXISTS idx_projects_directory_path ON projects(directory_path);
"""


def _is_contention(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def retry_on_contention(method):
    """Re-run a database method while another process holds the write lock.

    Each public method is one self-contained transaction, so running it again
    from the top is safe. After ``retry_attempts`` the lock error becomes a
    ``ContentionError``.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        delay = self.retry_backoff
        for attempt in range(self.retry_attempts + 1):
            try:
                return method(self, *args, **kwargs)
            except sqlite3.OperationalError as exc:
                if not _is_contention(exc):
                    raise
                if attempt >= self.retry_attempts:
                    raise ContentionError(
                        f"database is busy ({exc}); another tasktrack process "
                        "is writing",
                        suggestion="Try again in a moment.",
                    ) from exc
                logger.warning(
                    "%s hit a locked database (attempt %d/%d), retrying in %.2fs",
                    method.__name__,
                    attempt + 1,
                    self.retry_attempts,
                    delay,
                )
                time.sleep(delay)
                delay *= 2

    return wrapper


def _to_db(value: Optional[datetime]) -> Optional[str]:
    """Fixed-width UTC ISO text, so string order is time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TrackerDatabase:
    """SQLite-backed store for projects, tasks and labels.

    The file may be shared with other processes (the CLI and the MCP server
    usually run side by side), so nothing is cached: every call opens its own
    connection and relies on SQLite locking.
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        busy_timeout: float = 5.0,
        retry_attempts: int = 3,
        retry_backoff: float = 0.1,
    ):
        """Initialize the database.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory DB.
            busy_timeout: Seconds SQLite waits on a lock before giving up.
            retry_attempts: Extra attempts after a lock timeout.
            retry_backoff: First retry delay in seconds, doubled each time.
        """
        self.db_path = str(db_path)
        self.busy_timeout = busy_timeout
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self._is_memory = self.db_path == ":memory:"
        self._conn: Optional[sqlite3.Connection] = None
        if not self._is_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @classmethod
    def from_settings(cls, settings) -> "TrackerDatabase":
        return cls(
            settings.db_path,
            busy_timeout=settings.busy_timeout,
            retry_attempts=settings.retry_attempts,
            retry_backoff=settings.retry_backoff,
        )

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new database connection."""
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            if not self._is_memory:
                conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    @contextmanager
    def _get_conn(self, write: bool = False):
        """Get a database connection scoped to one transaction.

        For in-memory databases, reuses a single connection.
        For file-based databases, creates a new connection each time.
        Writers take the lock up front with BEGIN IMMEDIATE so that
        read-then-write sequences cannot interleave with another process.
        """
        if self._is_memory:
            if self._conn is None:
                self._conn = self._create_connection()
            conn = self._conn
        else:
            conn = self._create_connection()
        try:
            if write:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not self._is_memory:
                conn.close()

    @retry_on_contention
    def _init_db(self):
        """Initialize database schema."""
        with self._get_conn() as conn:
            conn.executescript(SCHEMA)
        logger.debug("Schema ready at %s", self.db_path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _generate_id(self) -> str:
        """Generate a canonical lowercase UUID."""
        return str(uuid.uuid4())

    def _now(self) -> datetime:
        return utcnow()

    def _row_to_project(self, row: sqlite3.Row) -> Project:
        return Project(
            id=row["id"],
            name=row["name"],
            directory_path=row["directory_path"],
            created_at=_from_db(row["created_at"]),
        )

    def _row_to_task(self, row: sqlite3.Row, labels: Iterable[str] = ()) -> Task:
        """Convert a database row to a Task model."""
        return Task(
            id=row["id"],
            project_id=row["project_id"],
            description=row["description"],
            done=bool(row["done"]),
            priority=Priority(row["priority"]) if row["priority"] else None,
            notes=row["notes"],
            due_date=_from_db(row["due_date"]),
            created_at=_from_db(row["created_at"]),
            updated_at=_from_db(row["updated_at"]),
            completed_at=_from_db(row["completed_at"]),
            labels=list(labels),
        )

    # ---- projects ----

    @retry_on_contention
    def create_project(
        self, name: str, directory_path: Optional[str] = None
    ) -> Project:
        """Create a project.

        Raises:
            ValidationError: If the name is blank.
            ConstraintError: If a project with this name already exists.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("project name must not be empty")

        project = Project(
            id=self._generate_id(),
            name=name,
            directory_path=directory_path,
            created_at=self._now(),
        )
        try:
            with self._get_conn(write=True) as conn:
                conn.execute(
                    """
                    INSERT INTO projects (id, name, directory_path, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        project.id,
                        project.name,
                        project.directory_path,
                        _to_db(project.created_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise ConstraintError(
                f"a project named '{name}' already exists ({exc})",
                suggestion="Pick another name or use list_projects to find it.",
            ) from exc

        logger.info("Created project %s (%s)", project.name, project.id)
        return project

    def _fetch_project(self, column: str, value: str, what: str) -> Project:
        with self._get_conn() as conn:
            row = conn.execute(
                f"SELECT * FROM projects WHERE {column} = ?", (value,)
            ).fetchone()
        if row is None:
            raise NotFoundError(
                f"project not found: no project with {what} '{value}'",
                suggestion="Use list_projects to see available projects.",
            )
        return self._row_to_project(row)

    @retry_on_contention
    def get_project(self, project_id: str) -> Project:
        return self._fetch_project("id", project_id, "ID")

    @retry_on_contention
    def get_project_by_name(self, name: str) -> Project:
        return self._fetch_project("name", name, "name")

    @retry_on_contention
    def get_project_by_path(self, path: str) -> Project:
        return self._fetch_project("directory_path", path, "path")

    @retry_on_contention
    def list_projects(self) -> list[Project]:
        """All projects, ordered by name."""
        with self._get_conn() as conn:
            rows = conn.execute("SELECT * FROM projects ORDER BY name").fetchall()
        return [self._row_to_project(row) for row in rows]

    @retry_on_contention
    def update_project(
        self,
        project_id: str,
        name: Optional[str] = None,
        directory_path: Optional[str] = None,
        clear_path: bool = False,
    ) -> Project:
        """Rename a project and/or change its associated directory."""
        updates = []
        params: list = []
        if name is not None:
            if not name.strip():
                raise ValidationError("project name must not be empty")
            updates.append("name = ?")
            params.append(name.strip())
        if clear_path:
            updates.append("directory_path = NULL")
        elif directory_path is not None:
            updates.append("directory_path = ?")
            params.append(directory_path)

        try:
            with self._get_conn(write=True) as conn:
                if updates:
                    cursor = conn.execute(
                        f"UPDATE projects SET {', '.join(updates)} WHERE id = ?",
                        [*params, project_id],
                    )
                    found = cursor.rowcount > 0
                else:
                    found = (
                        conn.execute(
                            "SELECT 1 FROM projects WHERE id = ?", (project_id,)
                        ).fetchone()
                        is not None
                    )
        except sqlite3.IntegrityError as exc:
            raise ConstraintError(
                f"a project named '{name}' already exists ({exc})",
                suggestion="Pick another name.",
            ) from exc

        if not found:
            raise NotFoundError(
                f"project not found: no project with ID '{project_id}'",
                suggestion="Use list_projects to see available projects.",
            )
        return self.get_project(project_id)

    @retry_on_contention
    def delete_project(self, project_id: str) -> None:
        """Delete a project together with its tasks and their label links."""
        with self._get_conn(write=True) as conn:
            cursor = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            deleted = cursor.rowcount
        if not deleted:
            raise NotFoundError(
                f"project not found: no project with ID '{project_id}'",
                suggestion="Use list_projects to see available projects.",
            )
        logger.info("Deleted project %s", project_id)

    @retry_on_contention
    def get_or_create_default_project(self) -> Project:
        """The project tasks land in when the caller names none."""
        with self._get_conn(write=True) as conn:
            row = conn.execute(
                "SELECT * FROM projects WHERE name = ?", (DEFAULT_PROJECT_NAME,)
            ).fetchone()
            if row is not None:
                return self._row_to_project(row)
            project = Project(
                id=self._generate_id(),
                name=DEFAULT_PROJECT_NAME,
                created_at=self._now(),
            )
            conn.execute(
                "INSERT INTO projects (id, name, directory_path, created_at) "
                "VALUES (?, ?, NULL, ?)",
                (project.id, project.name, _to_db(project.created_at)),
            )
        logger.info("Created default project %s", project.id)
        return project

    # ---- labels ----

    def _get_or_create_label(self, conn: sqlite3.Connection, name: str) -> Label:
        row = conn.execute("SELECT id, name FROM labels WHERE name = ?", (name,)).fetchone()
        if row is not None:
            return Label(id=row["id"], name=row["name"])
        cursor = conn.execute("INSERT INTO labels (name) VALUES (?)", (name,))
        logger.debug("Created label %s", name)
        return Label(id=cursor.lastrowid, name=name)

    def _link_label(self, conn: sqlite3.Connection, task_id: str, name: str) -> None:
        label = self._get_or_create_label(conn, name)
        conn.execute(
            "INSERT OR IGNORE INTO task_labels (task_id, label_id) VALUES (?, ?)",
            (task_id, label.id),
        )

    def _labels_for(
        self, conn: sqlite3.Connection, task_ids: list[str]
    ) -> dict[str, list[str]]:
        """Label names per task, sorted by name, in as few queries as possible."""
        result: dict[str, list[str]] = {task_id: [] for task_id in task_ids}
        for start in range(0, len(task_ids), _IN_CHUNK):
            chunk = task_ids[start : start + _IN_CHUNK]
            placeholders = ",".join("?" for _ in chunk)
            rows = conn.execute(
                f"""
                SELECT tl.task_id, l.name
                FROM task_labels tl
                JOIN labels l ON l.id = tl.label_id
                WHERE tl.task_id IN ({placeholders})
                ORDER BY l.name
                """,
                chunk,
            ).fetchall()
            for row in rows:
                result[row["task_id"]].append(row["name"])
        return result

    @staticmethod
    def _clean_label(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("label name must not be empty")
        return name

    @retry_on_contention
    def get_or_create_label(self, name: str) -> Label:
        """Look the label up and insert it if absent, in one transaction."""
        name = self._clean_label(name)
        with self._get_conn(write=True) as conn:
            return self._get_or_create_label(conn, name)

    @retry_on_contention
    def get_label_by_name(self, name: str) -> Label:
        name = self._clean_label(name)
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT id, name FROM labels WHERE name = ?", (name,)
            ).fetchone()
        if row is None:
            raise NotFoundError(
                f"label not found: no label named '{name}'",
                suggestion="Use list_labels to see existing labels.",
            )
        return Label(id=row["id"], name=row["name"])

    @retry_on_contention
    def list_labels(self) -> list[Label]:
        with self._get_conn() as conn:
            rows = conn.execute("SELECT id, name FROM labels ORDER BY name").fetchall()
        return [Label(id=row["id"], name=row["name"]) for row in rows]

    @retry_on_contention
    def get_task_labels(self, task_id: str) -> list[str]:
        with self._get_conn() as conn:
            return self._labels_for(conn, [task_id])[task_id]

    @retry_on_contention
    def add_label(self, task_id: str, name: str) -> Task:
        """Attach a label to a task. Attaching it twice is a no-op."""
        name = self._clean_label(name)
        with self._get_conn(write=True) as conn:
            self._require_task(conn, task_id)
            self._link_label(conn, task_id, name)
            conn.execute(
                "UPDATE tasks SET updated_at = ? WHERE id = ?",
                (_to_db(self._now()), task_id),
            )
        return self.get_task(task_id)

    @retry_on_contention
    def remove_label(self, task_id: str, name: str) -> Task:
        """Detach a label from a task. The label itself is kept."""
        name = self._clean_label(name)
        with self._get_conn(write=True) as conn:
            self._require_task(conn, task_id)
            cursor = conn.execute(
                """
                DELETE FROM task_labels
                WHERE task_id = ?
                  AND label_id = (SELECT id FROM labels WHERE name = ?)
                """,
                (task_id, name),
            )
            if cursor.rowcount:
                conn.execute(
                    "UPDATE tasks SET updated_at = ? WHERE id = ?",
                    (_to_db(self._now()), task_id),
                )
        return self.get_task(task_id)

    # ---- tasks ----

    def _require_task(self, conn: sqlite3.Connection, task_id: str) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise NotFoundError(
                f"task not found: no task with ID '{task_id}'",
                suggestion="Use list_tasks to see available tasks.",
            )
        return row

    @retry_on_contention
    def create_task(self, data: TaskCreate) -> Task:
        """Create a task and attach its labels in a single transaction.

        Raises:
            ValidationError: If the description is blank.
            NotFoundError: If the project does not exist.
        """
        description = data.description.strip()
        if not description:
            raise ValidationError("description must not be empty")

        task_id = self._generate_id()
        now = self._now()

        with self._get_conn(write=True) as conn:
            if conn.execute(
                "SELECT 1 FROM projects WHERE id = ?", (data.project_id,)
            ).fetchone() is None:
                raise NotFoundError(
                    f"project not found: no project with ID '{data.project_id}'",
                    suggestion="Use list_projects, or omit project_id to use the "
                    "default project.",
                )
            conn.execute(
                """
                INSERT INTO tasks
                (id, project_id, description, done, priority, notes, due_date,
                 created_at, updated_at, completed_at)
                VALUES (?, ?, ?, 0, ?, ?, ?, ?, ?, NULL)
                """,
                (
                    task_id,
                    data.project_id,
                    description,
                    data.priority.value if data.priority else None,
                    data.notes,
                    _to_db(data.due_date),
                    _to_db(now),
                    _to_db(now),
                ),
            )
            for name in data.labels:
                self._link_label(conn, task_id, self._clean_label(name))

        logger.info("Created task %s in project %s", task_id[:8], data.project_id[:8])
        return self.get_task(task_id)

    @retry_on_contention
    def get_task(self, task_id: str) -> Task:
        """Get a task by its full ID."""
        with self._get_conn() as conn:
            row = self._require_task(conn, task_id)
            labels = self._labels_for(conn, [task_id])[task_id]
        return self._row_to_task(row, labels)

    @retry_on_contention
    def resolve_task(self, ref: str) -> Task:
        """Find the single task whose ID starts with ``ref``.

        Raises:
            ValidationError: Prefix shorter than 6 characters or not lowercase hex.
            NotFoundError: Nothing matches.
            AmbiguousError: Several tasks match; lists the first 8 chars of each.
        """
        ref = (ref or "").strip()
        if len(ref) < MIN_PREFIX_LENGTH:
            raise ValidationError(
                f"task ID prefix must be at least {MIN_PREFIX_LENGTH} characters, "
                f"got '{ref}'"
            )
        if not _PREFIX_RE.match(ref):
            raise ValidationError(
                f"invalid task ID '{ref}': use the lowercase hexadecimal ID or a "
                "prefix of it"
            )

        # GLOB is a case-sensitive prefix match; ref holds no glob metacharacters.
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE id GLOB ? ORDER BY id", (ref + "*",)
            ).fetchall()
            if len(rows) == 1:
                labels = self._labels_for(conn, [rows[0]["id"]])[rows[0]["id"]]

        if not rows:
            raise NotFoundError(
                f"no task found with ID prefix '{ref}'",
                suggestion="Use list_tasks to see available tasks.",
            )
        if len(rows) > 1:
            raise AmbiguousError(ref, [row["id"][:8] for row in rows])
        return self._row_to_task(rows[0], labels)

    @retry_on_contention
    def list_tasks(
        self, filters: Optional[TaskFilter] = None, now: Optional[datetime] = None
    ) -> list[Task]:
        """List tasks matching every supplied filter, newest first."""
        filters = filters or TaskFilter()

        query = """
            SELECT DISTINCT t.*
            FROM tasks t
        """
        params: list = []
        if filters.label is not None:
            query += """
            JOIN task_labels tl ON tl.task_id = t.id
            JOIN labels l ON l.id = tl.label_id
            """
        query += " WHERE 1=1"

        if filters.project_id is not None:
            query += " AND t.project_id = ?"
            params.append(filters.project_id)
        if filters.done is not None:
            query += " AND t.done = ?"
            params.append(1 if filters.done else 0)
        if filters.priority is not None:
            query += " AND t.priority = ?"
            params.append(filters.priority.value)
        if filters.label is not None:
            query += " AND l.name = ?"
            params.append(self._clean_label(filters.label))

        query += " ORDER BY t.created_at DESC, t.rowid DESC"

        with self._get_conn() as conn:
            rows = conn.execute(query, params).fetchall()
            labels = self._labels_for(conn, [row["id"] for row in rows])

        tasks = [self._row_to_task(row, labels[row["id"]]) for row in rows]
        if filters.overdue is not None:
            now = now or self._now()
            tasks = [t for t in tasks if t.is_overdue(now) == filters.overdue]
        return tasks

    @retry_on_contention
    def count_tasks(self) -> int:
        with self._get_conn() as conn:
            (count,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
        return int(count)

    def _write_task(self, conn: sqlite3.Connection, task: Task) -> None:
        conn.execute(
            """
            UPDATE tasks
            SET description = ?, done = ?, priority = ?, notes = ?, due_date = ?,
                updated_at = ?, completed_at = ?
            WHERE id = ?
            """,
            (
                task.description,
                1 if task.done else 0,
                task.priority.value if task.priority else None,
                task.notes,
                _to_db(task.due_date),
                _to_db(task.updated_at),
                _to_db(task.completed_at),
                task.id,
            ),
        )

    @retry_on_contention
    def update_task(self, task_id: str, data: TaskUpdate) -> Task:
        """Update the fields that are set in ``data``; always bumps updated_at."""
        if data.description is not None and not data.description.strip():
            raise ValidationError("description must not be empty")

        with self._get_conn(write=True) as conn:
            task = self._row_to_task(self._require_task(conn, task_id))
            if data.description is not None:
                task.description = data.description.strip()
            if data.clear_priority:
                task.priority = None
            elif data.priority is not None:
                task.priority = data.priority
            if data.notes is not None:
                task.notes = data.notes
            if data.clear_due_date:
                task.due_date = None
            elif data.due_date is not None:
                task.due_date = data.due_date
            task.updated_at = self._now()
            self._write_task(conn, task)

        logger.debug("Updated task %s", task_id[:8])
        return self.get_task(task_id)

    def _set_done(self, task_id: str, done: bool) -> Task:
        with self._get_conn(write=True) as conn:
            task = self._row_to_task(self._require_task(conn, task_id))
            if done:
                task.mark_done(self._now())
            else:
                task.mark_undone(self._now())
            self._write_task(conn, task)
        logger.info("Marked task %s %s", task_id[:8], "done" if done else "not done")
        return self.get_task(task_id)

    @retry_on_contention
    def mark_done(self, task_id: str) -> Task:
        return self._set_done(task_id, True)

    @retry_on_contention
    def mark_undone(self, task_id: str) -> Task:
        return self._set_done(task_id, False)

    @retry_on_contention
    def delete_task(self, task_id: str) -> None:
        """Delete a task and its label links."""
        with self._get_conn(write=True) as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            deleted = cursor.rowcount
        if not deleted:
            raise NotFoundError(
                f"task not found: no task with ID '{task_id}'",
                suggestion="Use list_tasks to see available tasks.",
            )
        logger.info("Deleted task %s", task_id[:8])
