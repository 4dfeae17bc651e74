"""Summary statistics over the whole task set."""

import logging
from datetime import datetime
from typing import Optional

from .db import TrackerDatabase
from .models import OldestPending, ProjectCount, Stats, StatsSummary, Task, utcnow

logger = logging.getLogger(__name__)

NO_PRIORITY = "none"


def compute_stats(db: TrackerDatabase, now: Optional[datetime] = None) -> Stats:
    """Scan every task once and aggregate counts.

    Always reads from the database: the CLI and the MCP server write to the
    same file, so a cached result could be stale.
    """
    now = now or utcnow()
    tasks = db.list_tasks()
    projects = db.list_projects()

    summary = StatsSummary(total_tasks=len(tasks))
    by_priority: dict[str, int] = {}
    project_counts: dict[str, int] = {}
    oldest: Optional[Task] = None

    for task in tasks:
        if task.done:
            summary.completed += 1
        else:
            summary.pending += 1
            if oldest is None or task.created_at < oldest.created_at:
                oldest = task

        if task.is_overdue(now):
            summary.overdue += 1

        key = task.priority.value if task.priority else NO_PRIORITY
        by_priority[key] = by_priority.get(key, 0) + 1

        project_counts[task.project_id] = project_counts.get(task.project_id, 0) + 1

    # tasks and projects are separate reads; skip projects deleted in between
    names = {project.id: project.name for project in projects}
    by_project = [
        ProjectCount(project_id=project_id, project_name=names[project_id], task_count=count)
        for project_id, count in project_counts.items()
        if project_id in names
    ]
    by_project.sort(key=lambda entry: entry.task_count, reverse=True)

    oldest_pending = None
    if oldest is not None:
        oldest_pending = OldestPending(
            id=oldest.id,
            description=oldest.description,
            age_days=max(0, (now - oldest.created_at).days),
        )

    logger.debug(
        "Stats computed: %d tasks, %d pending, %d overdue",
        summary.total_tasks,
        summary.pending,
        summary.overdue,
    )
    return Stats(
        summary=summary,
        by_priority=by_priority,
        by_project=by_project,
        oldest_pending=oldest_pending,
    )
