"""Terminal display strings. Output is rich console markup."""

from datetime import datetime
from typing import Optional

from rich.markup import escape

from .models import Priority, Project, Stats, Task, utcnow

SEPARATOR = "─" * 45
SHORT_ID_LENGTH = 6

_PRIORITY_STYLES = {
    Priority.HIGH: "bold red",
    Priority.MEDIUM: "yellow",
    Priority.LOW: "dim",
}


def format_task(task: Task, now: Optional[datetime] = None) -> str:
    """Two-line summary: ID, priority and description, then due date and labels."""
    now = now or utcnow()
    parts = ["  "]
    if task.done:
        parts.append("[green]✓[/green] ")
    parts.append(f"[dim]{task.id[:SHORT_ID_LENGTH]}[/dim]  ")
    if task.priority is not None:
        style = _PRIORITY_STYLES[task.priority]
        parts.append(f"[{style}]\\[{task.priority.value.upper()}][/{style}] ")
    parts.append(escape(task.description))
    lines = ["".join(parts)]

    metadata = []
    if task.due_date is not None:
        due = task.due_date.strftime("%Y-%m-%d")
        if task.is_overdue(now):
            due = f"[red]{due} (overdue)[/red]"
        metadata.append(f"Due: {due}")
    if task.labels:
        metadata.append("Labels: " + escape(", ".join(task.labels)))
    if metadata:
        lines.append("          [dim]" + " | ".join(metadata) + "[/dim]")
    return "\n".join(lines)


def format_project_header(project: Project) -> str:
    header = f"PROJECT: [bold cyan]{escape(project.name)}[/bold cyan]"
    if project.directory_path:
        header += f" [dim]({escape(project.directory_path)})[/dim]"
    return header


def format_separator() -> str:
    return f"[dim]{SEPARATOR}[/dim]"


def format_stats(stats: Stats) -> str:
    summary = stats.summary
    lines = [
        "[bold]STATS[/bold]",
        format_separator(),
        f"Total: {summary.total_tasks}  Pending: {summary.pending}  "
        f"Completed: {summary.completed}  Overdue: {summary.overdue}",
    ]
    if stats.by_priority:
        lines.append(
            "By priority: "
            + ", ".join(f"{name} {count}" for name, count in sorted(stats.by_priority.items()))
        )
    for entry in stats.by_project:
        lines.append(f"  [cyan]{escape(entry.project_name)}[/cyan]: {entry.task_count}")
    if stats.oldest_pending is not None:
        oldest = stats.oldest_pending
        lines.append(
            f"Oldest pending: [dim]{oldest.id[:SHORT_ID_LENGTH]}[/dim] "
            f"{escape(oldest.description)} ({oldest.age_days} days)"
        )
    return "\n".join(lines)
