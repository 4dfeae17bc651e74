"""MCP tool declarations and handlers.

Each tool is a ``ToolSpec`` declared with ``@tool``; the registry validates
arguments against the declaration before calling the handler and turns any
``TrackerError`` into an ``{"error": {...}}`` result, so a failed operation
still completes as a normal call.
"""

import logging
import os
from typing import Any, Optional

from .db import TrackerDatabase
from .errors import TrackerError, ValidationError
from .models import Priority, TaskCreate, TaskFilter, TaskUpdate
from .schema import (
    ARRAY,
    BOOLEAN,
    DATE_TIME,
    STRING,
    TASK_REF,
    UUID,
    Param,
    ToolSpec,
    validate_arguments,
)

logger = logging.getLogger(__name__)

PRIORITIES = tuple(p.value for p in Priority)

TOOLS: list[ToolSpec] = []


def tool(name: str, description: str, params: Optional[list[Param]] = None):
    """Declare a tool: the decorated function becomes its handler."""

    def decorator(fn):
        TOOLS.append(
            ToolSpec(name=name, description=description, params=params or [], handler=fn)
        )
        return fn

    return decorator


def _task_ref(description: str) -> Param:
    return Param(
        "task_id",
        STRING,
        description,
        required=True,
        format=TASK_REF,
    )


def _priority(description: str) -> Param:
    return Param("priority", STRING, description, enum=PRIORITIES)


@tool(
    "create_task",
    "Create a new task. Only the description is required; priority, labels, "
    "notes and a due date are optional. Without project_id the task goes to "
    "the 'default' project. Returns the stored task including its UUID, which "
    "later calls accept in full or as a 6+ character prefix.",
    [
        Param(
            "description",
            STRING,
            "Short statement of the work. Example: 'write migration for users table'",
            required=True,
        ),
        Param(
            "project_id",
            STRING,
            "UUID of the owning project. Omit to use the default project.",
            format=UUID,
        ),
        _priority("Priority: low, medium or high."),
        Param("labels", ARRAY, "Labels to attach. Example: ['bug', 'backend']"),
        Param("notes", STRING, "Extra context for the task."),
        Param(
            "due_date",
            STRING,
            "Due date in ISO 8601. Example: '2025-12-01T15:04:05Z' or '2025-12-01'",
            format=DATE_TIME,
        ),
    ],
)
def create_task(
    db: TrackerDatabase,
    description: str,
    project_id: Optional[str] = None,
    priority: Optional[str] = None,
    labels: Optional[list[str]] = None,
    notes: Optional[str] = None,
    due_date=None,
) -> dict:
    if project_id:
        project = db.get_project(project_id)
    else:
        project = db.get_or_create_default_project()

    task = db.create_task(
        TaskCreate(
            project_id=project.id,
            description=description,
            priority=Priority(priority) if priority else None,
            notes=notes,
            due_date=due_date,
            labels=labels or [],
        )
    )
    return task.model_dump(mode="json")


@tool(
    "list_tasks",
    "List tasks, newest first. Every filter is optional and all supplied "
    "filters must match: project, completion state, priority, label and "
    "overdue state. Returns the tasks, their count and the filters applied.",
    [
        Param("project_id", STRING, "Only tasks of this project UUID.", format=UUID),
        Param("done", BOOLEAN, "true for completed tasks, false for open ones."),
        _priority("Only tasks with this priority: low, medium or high."),
        Param("label", STRING, "Only tasks carrying this exact label."),
        Param(
            "overdue",
            BOOLEAN,
            "true for open tasks whose due day has passed, false for the rest.",
        ),
    ],
)
def list_tasks(
    db: TrackerDatabase,
    project_id: Optional[str] = None,
    done: Optional[bool] = None,
    priority: Optional[str] = None,
    label: Optional[str] = None,
    overdue: Optional[bool] = None,
) -> dict:
    filters = TaskFilter(
        project_id=project_id,
        done=done,
        priority=Priority(priority) if priority else None,
        label=label,
        overdue=overdue,
    )
    tasks = db.list_tasks(filters)
    return {
        "tasks": [t.model_dump(mode="json") for t in tasks],
        "count": len(tasks),
        "filters": filters.applied(),
    }


@tool(
    "get_task",
    "Fetch one task by its UUID or a unique prefix of at least 6 characters.",
    [_task_ref("Task UUID or unique prefix.")],
)
def get_task(db: TrackerDatabase, task_id: str) -> dict:
    return db.resolve_task(task_id).model_dump(mode="json")


@tool(
    "mark_done",
    "Mark a task as complete and record its completion time. Returns the "
    "updated task. Use list_tasks to find the ID.",
    [_task_ref("Task UUID or unique prefix of the task to complete.")],
)
def mark_done(db: TrackerDatabase, task_id: str) -> dict:
    task = db.resolve_task(task_id)
    return db.mark_done(task.id).model_dump(mode="json")


@tool(
    "mark_undone",
    "Reopen a completed task and clear its completion time. Returns the "
    "updated task. Use list_tasks with done=true to find completed tasks.",
    [_task_ref("Task UUID or unique prefix of the task to reopen.")],
)
def mark_undone(db: TrackerDatabase, task_id: str) -> dict:
    task = db.resolve_task(task_id)
    return db.mark_undone(task.id).model_dump(mode="json")


@tool(
    "delete_task",
    "Permanently delete a task and its label associations. Cannot be undone.",
    [_task_ref("Task UUID or unique prefix of the task to delete.")],
)
def delete_task(db: TrackerDatabase, task_id: str) -> dict:
    task = db.resolve_task(task_id)
    db.delete_task(task.id)
    return {
        "success": True,
        "message": f"Task '{task.id}' deleted",
        "task_id": task.id,
    }


@tool(
    "update_task",
    "Change a task's description, priority, notes or due date. Only the "
    "fields you pass are changed. Returns the updated task.",
    [
        _task_ref("Task UUID or unique prefix of the task to update."),
        Param("description", STRING, "New description."),
        _priority("New priority: low, medium or high."),
        Param("notes", STRING, "New notes."),
        Param("due_date", STRING, "New due date in ISO 8601.", format=DATE_TIME),
    ],
)
def update_task(
    db: TrackerDatabase,
    task_id: str,
    description: Optional[str] = None,
    priority: Optional[str] = None,
    notes: Optional[str] = None,
    due_date=None,
) -> dict:
    task = db.resolve_task(task_id)
    updated = db.update_task(
        task.id,
        TaskUpdate(
            description=description,
            priority=Priority(priority) if priority else None,
            notes=notes,
            due_date=due_date,
        ),
    )
    return updated.model_dump(mode="json")


@tool(
    "add_label",
    "Attach a label to a task, creating the label on first use. Attaching a "
    "label the task already has changes nothing. Returns the task.",
    [
        _task_ref("Task UUID or unique prefix of the task to label."),
        Param("label", STRING, "Label name (case-sensitive).", required=True),
    ],
)
def add_label(db: TrackerDatabase, task_id: str, label: str) -> dict:
    task = db.resolve_task(task_id)
    return db.add_label(task.id, label).model_dump(mode="json")


@tool(
    "remove_label",
    "Detach a label from a task. The label stays available for other tasks; "
    "removing a label the task does not have succeeds silently.",
    [
        _task_ref("Task UUID or unique prefix of the task to unlabel."),
        Param("label", STRING, "Label name (case-sensitive).", required=True),
    ],
)
def remove_label(db: TrackerDatabase, task_id: str, label: str) -> dict:
    task = db.resolve_task(task_id)
    return db.remove_label(task.id, label).model_dump(mode="json")


@tool(
    "create_project",
    "Create a project to group tasks, optionally tied to a directory such as "
    "a git checkout. Names are unique. Returns the project with its UUID.",
    [
        Param("name", STRING, "Unique project name. Example: 'backend-api'", required=True),
        Param("path", STRING, "Absolute directory path to associate."),
    ],
)
def create_project(db: TrackerDatabase, name: str, path: Optional[str] = None) -> dict:
    if path is not None and not os.path.isabs(path):
        raise ValidationError(f"invalid path '{path}': must be an absolute path")
    return db.create_project(name, path).model_dump(mode="json")


@tool("list_projects", "List every project, sorted by name.")
def list_projects(db: TrackerDatabase) -> dict:
    projects = db.list_projects()
    return {
        "projects": [p.model_dump(mode="json") for p in projects],
        "count": len(projects),
    }


@tool(
    "delete_project",
    "Permanently delete a project. WARNING: all of its tasks are deleted too.",
    [Param("project_id", STRING, "UUID of the project to delete.", required=True, format=UUID)],
)
def delete_project(db: TrackerDatabase, project_id: str) -> dict:
    db.delete_project(project_id)
    return {
        "success": True,
        "message": f"Project '{project_id}' and all of its tasks deleted",
        "project_id": project_id,
    }


@tool("list_labels", "List every label that has been used, sorted by name.")
def list_labels(db: TrackerDatabase) -> dict:
    labels = db.list_labels()
    return {"labels": [label.name for label in labels], "count": len(labels)}


class ToolRegistry:
    """Looks tools up by name, validates arguments and runs handlers."""

    def __init__(self, db: TrackerDatabase, specs: Optional[list[ToolSpec]] = None):
        self.db = db
        self._specs = {spec.name: spec for spec in (specs if specs is not None else TOOLS)}

    def specs(self) -> list[ToolSpec]:
        return list(self._specs.values())

    def get(self, name: str) -> ToolSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise ValidationError(
                f"unknown tool '{name}'",
                suggestion="Available tools: " + ", ".join(sorted(self._specs)),
            ) from None

    def call(self, name: str, arguments: Optional[dict[str, Any]] = None) -> dict:
        """Run a tool. Failures come back as ``{"error": {...}}``, never raised."""
        try:
            spec = self.get(name)
            cleaned = validate_arguments(spec, arguments)
            return spec.handler(self.db, **cleaned)
        except TrackerError as exc:
            logger.info("Tool %s failed: %s", name, exc.message)
            return {"error": exc.to_dict()}
        except Exception:
            logger.exception("Tool %s crashed", name)
            return {
                "error": {
                    "type": "internal",
                    "message": f"{name} failed unexpectedly; see server log",
                }
            }
