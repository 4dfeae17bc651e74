"""Read-only MCP resources.

Every resource answers with the same envelope::

    {"metadata": {"timestamp", "count", "resource_uri", "filters"},
     "data": ...,
     "links": {name: uri}}

The task views are fixed filters over ``TrackerDatabase.list_tasks``; ad hoc
combinations go through the ``list_tasks`` tool instead.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from .db import TrackerDatabase
from .errors import NotFoundError, TrackerError, ValidationError
from .models import Priority, TaskFilter, utcnow
from .stats import compute_stats

logger = logging.getLogger(__name__)

PROJECTS_URI = "tasktrack://projects"
TASKS_URI = "tasktrack://tasks"
PENDING_URI = "tasktrack://tasks/pending"
OVERDUE_URI = "tasktrack://tasks/overdue"
HIGH_PRIORITY_URI = "tasktrack://tasks/high-priority"
STATS_URI = "tasktrack://stats"
PROJECT_TASKS_TEMPLATE = "tasktrack://projects/{project_id}/tasks"

_PROJECT_TASKS_RE = re.compile(r"^tasktrack://projects/([^/]+)/tasks$")


@dataclass
class ResourceSpec:
    """A fixed resource URI and how to read it."""

    uri: str
    name: str
    description: str
    reader: Callable[..., dict]


def envelope(
    uri: str,
    data: Any,
    count: int,
    links: dict[str, str],
    filters: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> dict:
    return {
        "metadata": {
            "timestamp": (now or utcnow()).isoformat(),
            "count": count,
            "resource_uri": uri,
            "filters": filters or {},
        },
        "data": data,
        "links": links,
    }


def _task_links(filters: TaskFilter) -> dict[str, str]:
    links = {"all_tasks": TASKS_URI, "projects": PROJECTS_URI, "stats": STATS_URI}
    if filters.done is not True:
        links["pending"] = PENDING_URI
    if filters.priority is None:
        links["high_priority"] = HIGH_PRIORITY_URI
    if not filters.overdue:
        links["overdue"] = OVERDUE_URI
    return links


def read_task_view(
    db: TrackerDatabase,
    uri: str,
    filters: TaskFilter,
    now: Optional[datetime] = None,
) -> dict:
    now = now or utcnow()
    tasks = db.list_tasks(filters, now=now)
    data = [t.model_dump(mode="json") for t in tasks]
    return envelope(uri, data, len(data), _task_links(filters), filters.applied(), now)


def read_projects(db: TrackerDatabase, now: Optional[datetime] = None) -> dict:
    projects = db.list_projects()
    data = [p.model_dump(mode="json") for p in projects]
    links = {"all_tasks": TASKS_URI, "project_tasks": PROJECT_TASKS_TEMPLATE}
    return envelope(PROJECTS_URI, data, len(data), links, now=now)


def read_stats(db: TrackerDatabase, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    stats = compute_stats(db, now=now)
    links = {
        "all_tasks": TASKS_URI,
        "pending": PENDING_URI,
        "overdue": OVERDUE_URI,
        "projects": PROJECTS_URI,
    }
    return envelope(
        STATS_URI,
        stats.model_dump(mode="json"),
        stats.summary.total_tasks,
        links,
        now=now,
    )


def read_project_tasks(
    db: TrackerDatabase, project_id: str, now: Optional[datetime] = None
) -> dict:
    """Tasks of one project; the project must exist."""
    try:
        project_id = str(uuid.UUID(project_id))
    except ValueError as exc:
        raise ValidationError(
            f"invalid project_id '{project_id}': must be a full UUID"
        ) from exc
    db.get_project(project_id)
    uri = PROJECT_TASKS_TEMPLATE.format(project_id=project_id)
    return read_task_view(db, uri, TaskFilter(project_id=project_id), now)


def _view(uri: str, filters: TaskFilter) -> Callable[..., dict]:
    def reader(db: TrackerDatabase, now: Optional[datetime] = None) -> dict:
        return read_task_view(db, uri, filters, now)

    return reader


RESOURCES: list[ResourceSpec] = [
    ResourceSpec(
        PROJECTS_URI,
        "All Projects",
        "Every project with its name, directory path and creation time.",
        read_projects,
    ),
    ResourceSpec(
        TASKS_URI,
        "All Tasks",
        "Every task across all projects, open and completed, newest first.",
        _view(TASKS_URI, TaskFilter()),
    ),
    ResourceSpec(
        PENDING_URI,
        "Pending Tasks",
        "Every task that is not done yet.",
        _view(PENDING_URI, TaskFilter(done=False)),
    ),
    ResourceSpec(
        OVERDUE_URI,
        "Overdue Tasks",
        "Open tasks whose due day is already past.",
        _view(OVERDUE_URI, TaskFilter(overdue=True)),
    ),
    ResourceSpec(
        HIGH_PRIORITY_URI,
        "High Priority Tasks",
        "Tasks with high priority, whether done or not.",
        _view(HIGH_PRIORITY_URI, TaskFilter(priority=Priority.HIGH)),
    ),
    ResourceSpec(
        STATS_URI,
        "Summary Statistics",
        "Totals, pending/completed/overdue counts, breakdown by priority and "
        "project, and the oldest pending task.",
        read_stats,
    ),
]


def read_resource(db: TrackerDatabase, uri: str, now: Optional[datetime] = None) -> dict:
    """Read any resource by URI. Failures come back as ``{"error": {...}}``."""
    try:
        for spec in RESOURCES:
            if spec.uri == uri:
                return spec.reader(db, now=now)
        match = _PROJECT_TASKS_RE.match(uri)
        if match:
            return read_project_tasks(db, match.group(1), now=now)
        raise NotFoundError(
            f"unknown resource '{uri}'",
            suggestion="Known resources: " + ", ".join(s.uri for s in RESOURCES),
        )
    except TrackerError as exc:
        logger.info("Resource %s failed: %s", uri, exc.message)
        return {"error": exc.to_dict()}
