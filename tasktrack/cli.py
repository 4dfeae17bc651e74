"""Command line front end.

Works on the same database file as the MCP server. Inside a git checkout the
repository's project is picked up automatically.
"""

import argparse
import logging
import os
import sys
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm

from . import __version__
from .config import Settings
from .db import TrackerDatabase
from .detect import find_git_root, normalize_path, project_for_directory
from .errors import TrackerError, ValidationError
from .format import format_project_header, format_separator, format_stats, format_task
from .logging_setup import setup_logging
from .models import Priority, Project, TaskCreate, TaskFilter
from .schema import parse_datetime
from .stats import compute_stats

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 3


def _short(task_id: str) -> str:
    return f"[dim]{task_id[:6]}[/dim]"


def _git_project(db: TrackerDatabase, create: bool) -> Optional[Project]:
    """Project for the current checkout, offering to register it when missing."""
    cwd = os.getcwd()
    project = project_for_directory(db, cwd)
    if project is not None or not create:
        return project

    root = find_git_root(cwd)
    if root is None:
        return None
    name = os.path.basename(root)
    if sys.stdin.isatty():
        console.print(f"Git repository detected: {escape(root)}")
        if not Confirm.ask(f"Create project '{escape(name)}'?", default=True):
            return None
    project = db.create_project(name, root)
    console.print(f"[green]✓ Created project '{escape(name)}'[/green]")
    return project


def _target_project(db: TrackerDatabase, name: Optional[str]) -> Project:
    if name:
        return db.get_project_by_name(name)
    return _git_project(db, create=True) or db.get_or_create_default_project()


def cmd_add(args, db: TrackerDatabase) -> int:
    description = " ".join(args.description).strip()
    if len(description) < MIN_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"description must be at least {MIN_DESCRIPTION_LENGTH} characters"
        )
    project = _target_project(db, args.project)
    labels = [tag.strip() for tag in (args.labels or "").split(",") if tag.strip()]
    task = db.create_task(
        TaskCreate(
            project_id=project.id,
            description=description,
            priority=Priority(args.priority) if args.priority else None,
            notes=args.notes,
            due_date=parse_datetime(args.due, "due date") if args.due else None,
            labels=labels,
        )
    )
    console.print("[green]✓ Added task[/green]")
    console.print(f"  {_short(task.id)} {escape(task.description)}")
    return 0


def cmd_list(args, db: TrackerDatabase) -> int:
    project_id = None
    if args.project:
        project_id = db.get_project_by_name(args.project).id
    elif not args.all:
        context = _git_project(db, create=False)
        project_id = context.id if context else None

    done = True if args.done else (False if args.pending else None)
    filters = TaskFilter(
        project_id=project_id,
        done=done,
        priority=Priority(args.priority) if args.priority else None,
        label=args.label,
        overdue=True if args.overdue else None,
    )
    tasks = db.list_tasks(filters)
    if not tasks:
        console.print("No tasks found. Add one with 'tasktrack add <description>'")
        return 0

    grouped: dict[str, list] = {}
    for task in tasks:
        grouped.setdefault(task.project_id, []).append(task)
    projects = {p.id: p for p in db.list_projects()}

    for pid, items in grouped.items():
        project = projects.get(pid)
        if project is None:
            # deleted after the tasks were read
            console.print(f"PROJECT: [dim](deleted project {pid[:8]})[/dim]")
        else:
            console.print(format_project_header(project))
        console.print(format_separator())
        for task in items:
            console.print(format_task(task))
        console.print()

    console.print(format_separator())
    status = "completed" if done else ("pending" if done is False else "")
    noun = f"{status} task(s)" if status else "task(s)"
    console.print(f"{len(tasks)} {noun} across {len(grouped)} project(s)")
    return 0


def cmd_done(args, db: TrackerDatabase) -> int:
    for ref in args.task_ids:
        task = db.mark_done(db.resolve_task(ref).id)
        console.print("[green]✓ Marked task as done[/green]")
        console.print(f"  {_short(task.id)} {escape(task.description)}")
    return 0


def cmd_undone(args, db: TrackerDatabase) -> int:
    for ref in args.task_ids:
        task = db.mark_undone(db.resolve_task(ref).id)
        console.print("[yellow]✓ Marked task as not done[/yellow]")
        console.print(f"  {_short(task.id)} {escape(task.description)}")
    return 0


def cmd_remove(args, db: TrackerDatabase) -> int:
    task = db.resolve_task(args.task_id)
    db.delete_task(task.id)
    console.print("[yellow]✓ Removed task[/yellow]")
    console.print(f"  {escape(task.description)}")
    return 0


def cmd_project_add(args, db: TrackerDatabase) -> int:
    path = normalize_path(args.path) if args.path else None
    project = db.create_project(args.name, path)
    console.print(f"[green]✓ Created project '{escape(project.name)}'[/green]")
    if path:
        console.print(f"  Path: {escape(path)}")
    return 0


def cmd_project_list(args, db: TrackerDatabase) -> int:
    projects = db.list_projects()
    if not projects:
        console.print("No projects yet. Create one with 'tasktrack project add <name>'")
        return 0
    console.print("[bold]PROJECTS[/bold]")
    console.print(format_separator())
    for project in projects:
        console.print(f"[bold cyan]{escape(project.name)}[/bold cyan]")
        if project.directory_path:
            console.print(f"  [dim]{escape(project.directory_path)}[/dim]")
    return 0


def cmd_project_remove(args, db: TrackerDatabase) -> int:
    project = db.get_project_by_name(args.name)
    db.delete_project(project.id)
    console.print(f"[yellow]✓ Removed project '{escape(project.name)}' and its tasks[/yellow]")
    return 0


def cmd_project_set_path(args, db: TrackerDatabase) -> int:
    project = db.get_project_by_name(args.name)
    path = normalize_path(args.path)
    db.update_project(project.id, directory_path=path)
    console.print(f"[green]✓ Set path of '{escape(project.name)}'[/green]")
    console.print(f"  Path: {escape(path)}")
    return 0


def cmd_label_add(args, db: TrackerDatabase) -> int:
    task = db.add_label(db.resolve_task(args.task_id).id, args.label)
    console.print(f"[green]✓ Added label '{escape(args.label)}'[/green]")
    console.print(f"  {escape(task.description)}")
    return 0


def cmd_label_remove(args, db: TrackerDatabase) -> int:
    task = db.remove_label(db.resolve_task(args.task_id).id, args.label)
    console.print(f"[yellow]✓ Removed label '{escape(args.label)}'[/yellow]")
    console.print(f"  {escape(task.description)}")
    return 0


def cmd_label_list(args, db: TrackerDatabase) -> int:
    labels = db.list_labels()
    if not labels:
        console.print("No labels yet.")
        return 0
    console.print("[bold]LABELS[/bold]")
    for label in labels:
        console.print(f"  • {escape(label.name)}")
    return 0


def cmd_stats(args, db: TrackerDatabase) -> int:
    console.print(format_stats(compute_stats(db)))
    return 0


def cmd_serve(args, db: TrackerDatabase) -> int:
    from .server import run_server

    run_server(db, transport=args.transport, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every subcommand."""
    parser = argparse.ArgumentParser(
        prog="tasktrack",
        description="Git-aware task tracker with an MCP server for agents",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="Database file path (default: $TASKTRACK_DB or the XDG data dir)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", aliases=["a"], help="Add a new task")
    add.add_argument("description", nargs="+", help="What needs doing")
    add.add_argument("--project", "-p", help="Project name")
    add.add_argument("--priority", choices=[p.value for p in Priority], help="Priority")
    add.add_argument("--labels", "--tags", dest="labels", help="Comma-separated labels")
    add.add_argument("--notes", help="Additional notes")
    add.add_argument("--due", help="Due date (YYYY-MM-DD)")
    add.set_defaults(func=cmd_add)

    ls = sub.add_parser("list", aliases=["ls", "l"], help="List tasks")
    ls.add_argument("--project", "-p", help="Filter by project name")
    ls.add_argument("--label", "--tag", "-t", dest="label", help="Filter by label")
    state = ls.add_mutually_exclusive_group()
    state.add_argument("--done", action="store_true", help="Completed tasks only")
    state.add_argument("--pending", action="store_true", help="Open tasks only")
    ls.add_argument("--priority", choices=[p.value for p in Priority], help="Filter by priority")
    ls.add_argument("--overdue", action="store_true", help="Overdue tasks only")
    ls.add_argument("--all", "-a", action="store_true", help="Ignore the git project context")
    ls.set_defaults(func=cmd_list)

    done = sub.add_parser("done", aliases=["d"], help="Mark tasks as done")
    done.add_argument("task_ids", nargs="+", metavar="ID", help="Task UUID or prefix")
    done.set_defaults(func=cmd_done)

    undone = sub.add_parser("undone", aliases=["ud"], help="Mark tasks as not done")
    undone.add_argument("task_ids", nargs="+", metavar="ID", help="Task UUID or prefix")
    undone.set_defaults(func=cmd_undone)

    remove = sub.add_parser("remove", aliases=["rm"], help="Delete a task")
    remove.add_argument("task_id", metavar="ID", help="Task UUID or prefix")
    remove.set_defaults(func=cmd_remove)

    project = sub.add_parser("project", aliases=["p"], help="Manage projects")
    project_sub = project.add_subparsers(dest="project_command", required=True)
    p_add = project_sub.add_parser("add", aliases=["a"], help="Create a project")
    p_add.add_argument("name")
    p_add.add_argument("--path", help="Directory to associate with the project")
    p_add.set_defaults(func=cmd_project_add)
    p_list = project_sub.add_parser("list", aliases=["ls", "l"], help="List projects")
    p_list.set_defaults(func=cmd_project_list)
    p_rm = project_sub.add_parser("remove", aliases=["rm"], help="Delete a project and its tasks")
    p_rm.add_argument("name")
    p_rm.set_defaults(func=cmd_project_remove)
    p_path = project_sub.add_parser("set-path", help="Associate a project with a directory")
    p_path.add_argument("name")
    p_path.add_argument("path")
    p_path.set_defaults(func=cmd_project_set_path)

    label = sub.add_parser("label", aliases=["tag"], help="Manage task labels")
    label_sub = label.add_subparsers(dest="label_command", required=True)
    l_add = label_sub.add_parser("add", aliases=["a"], help="Attach a label to a task")
    l_add.add_argument("task_id", metavar="ID")
    l_add.add_argument("label")
    l_add.set_defaults(func=cmd_label_add)
    l_rm = label_sub.add_parser("remove", aliases=["rm", "r"], help="Detach a label")
    l_rm.add_argument("task_id", metavar="ID")
    l_rm.add_argument("label")
    l_rm.set_defaults(func=cmd_label_remove)
    l_list = label_sub.add_parser("list", aliases=["ls"], help="List labels")
    l_list.set_defaults(func=cmd_label_list)

    stats = sub.add_parser("stats", help="Show summary statistics")
    stats.set_defaults(func=cmd_stats)

    serve = sub.add_parser("serve", help="Run the MCP server")
    serve.add_argument(
        "--transport",
        choices=["stdio", "streamable-http"],
        default="stdio",
        help="Transport type (default: stdio)",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for HTTP transport (default: 8000)",
    )
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = Settings.from_env(db_path=args.db)

    if args.verbose:
        level = "DEBUG"
    elif args.func is cmd_serve:
        level = settings.log_level
    else:
        level = "WARNING"
    setup_logging(level, settings.log_file)

    db = TrackerDatabase.from_settings(settings)
    try:
        return args.func(args, db)
    except TrackerError as e:
        err_console.print(f"[red]Error:[/red] {escape(e.message)}")
        if e.suggestion:
            err_console.print(f"[dim]{escape(e.suggestion)}[/dim]")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
