"""MCP server for the task tracker.

Exposes the tool registry, the fixed resources and the workflow prompts over
FastMCP. Every call goes straight to the SQLite file, which the command line
front end may be writing to at the same time.
"""

import json
import logging
from typing import Annotated, Literal, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from . import prompts
from .config import Settings
from .db import TrackerDatabase
from .resources import PROJECT_TASKS_TEMPLATE, RESOURCES, read_resource
from .schema import DATE_TIME
from .tools import TOOLS, ToolRegistry

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP(
    "tasktrack",
    instructions=(
        "Task tracker with projects, tasks and labels. Use tools to change "
        "data and tasktrack:// resources for read-only views."
    ),
)

# Lazy initialization (happens on first tool call)
_registry: Optional[ToolRegistry] = None


def configure(db: TrackerDatabase) -> ToolRegistry:
    """Point the server at a database. Returns the tool registry in use."""
    global _registry
    _registry = ToolRegistry(db)
    return _registry


def _get_registry() -> ToolRegistry:
    """Get or initialize the tool registry from environment settings."""
    global _registry
    if _registry is None:
        settings = Settings.from_env()
        _registry = ToolRegistry(TrackerDatabase.from_settings(settings))
        logger.info("Initialized task database at %s", settings.db_path)
    return _registry


def _call(name: str, /, **arguments) -> dict:
    return _get_registry().call(name, arguments)


_SPECS = {spec.name: spec for spec in TOOLS}

PriorityName = Literal["low", "medium", "high"]


def _describe(tool_name: str) -> str:
    return _SPECS[tool_name].description


def _field(tool_name: str, param_name: str):
    """Field metadata for a wrapper argument, taken from the declared tool."""
    param = next(p for p in _SPECS[tool_name].params if p.name == param_name)
    extra = {"format": DATE_TIME} if param.format == DATE_TIME else None
    return Field(description=param.description, json_schema_extra=extra)


@mcp.tool(description=_describe("create_task"))
def create_task(
    description: Annotated[str, _field("create_task", "description")],
    project_id: Annotated[Optional[str], _field("create_task", "project_id")] = None,
    priority: Annotated[Optional[PriorityName], _field("create_task", "priority")] = None,
    labels: Annotated[Optional[list[str]], _field("create_task", "labels")] = None,
    notes: Annotated[Optional[str], _field("create_task", "notes")] = None,
    due_date: Annotated[Optional[str], _field("create_task", "due_date")] = None,
) -> dict:
    return _call(
        "create_task",
        description=description,
        project_id=project_id,
        priority=priority,
        labels=labels,
        notes=notes,
        due_date=due_date,
    )


@mcp.tool(description=_describe("list_tasks"))
def list_tasks(
    project_id: Annotated[Optional[str], _field("list_tasks", "project_id")] = None,
    done: Annotated[Optional[bool], _field("list_tasks", "done")] = None,
    priority: Annotated[Optional[PriorityName], _field("list_tasks", "priority")] = None,
    label: Annotated[Optional[str], _field("list_tasks", "label")] = None,
    overdue: Annotated[Optional[bool], _field("list_tasks", "overdue")] = None,
) -> dict:
    return _call(
        "list_tasks",
        project_id=project_id,
        done=done,
        priority=priority,
        label=label,
        overdue=overdue,
    )


@mcp.tool(description=_describe("get_task"))
def get_task(task_id: Annotated[str, _field("get_task", "task_id")]) -> dict:
    return _call("get_task", task_id=task_id)


@mcp.tool(description=_describe("mark_done"))
def mark_done(task_id: Annotated[str, _field("mark_done", "task_id")]) -> dict:
    return _call("mark_done", task_id=task_id)


@mcp.tool(description=_describe("mark_undone"))
def mark_undone(task_id: Annotated[str, _field("mark_undone", "task_id")]) -> dict:
    return _call("mark_undone", task_id=task_id)


@mcp.tool(description=_describe("delete_task"))
def delete_task(task_id: Annotated[str, _field("delete_task", "task_id")]) -> dict:
    return _call("delete_task", task_id=task_id)


@mcp.tool(description=_describe("update_task"))
def update_task(
    task_id: Annotated[str, _field("update_task", "task_id")],
    description: Annotated[Optional[str], _field("update_task", "description")] = None,
    priority: Annotated[Optional[PriorityName], _field("update_task", "priority")] = None,
    notes: Annotated[Optional[str], _field("update_task", "notes")] = None,
    due_date: Annotated[Optional[str], _field("update_task", "due_date")] = None,
) -> dict:
    return _call(
        "update_task",
        task_id=task_id,
        description=description,
        priority=priority,
        notes=notes,
        due_date=due_date,
    )


@mcp.tool(description=_describe("add_label"))
def add_label(
    task_id: Annotated[str, _field("add_label", "task_id")],
    label: Annotated[str, _field("add_label", "label")],
) -> dict:
    return _call("add_label", task_id=task_id, label=label)


@mcp.tool(description=_describe("remove_label"))
def remove_label(
    task_id: Annotated[str, _field("remove_label", "task_id")],
    label: Annotated[str, _field("remove_label", "label")],
) -> dict:
    return _call("remove_label", task_id=task_id, label=label)


@mcp.tool(description=_describe("create_project"))
def create_project(
    name: Annotated[str, _field("create_project", "name")],
    path: Annotated[Optional[str], _field("create_project", "path")] = None,
) -> dict:
    return _call("create_project", name=name, path=path)


@mcp.tool(description=_describe("list_projects"))
def list_projects() -> dict:
    return _call("list_projects")


@mcp.tool(description=_describe("delete_project"))
def delete_project(
    project_id: Annotated[str, _field("delete_project", "project_id")],
) -> dict:
    return _call("delete_project", project_id=project_id)


@mcp.tool(description=_describe("list_labels"))
def list_labels() -> dict:
    return _call("list_labels")


def _render(uri: str) -> str:
    return json.dumps(read_resource(_get_registry().db, uri), indent=2)


def _register_resource(uri: str, name: str, description: str) -> None:
    def reader() -> str:
        return _render(uri)

    mcp.resource(uri, name=name, description=description, mime_type="application/json")(
        reader
    )


for _spec in RESOURCES:
    _register_resource(_spec.uri, _spec.name, _spec.description)


@mcp.resource(
    PROJECT_TASKS_TEMPLATE,
    name="Project Tasks",
    description="Every task of one project, newest first.",
    mime_type="application/json",
)
def project_tasks(project_id: str) -> str:
    return _render(PROJECT_TASKS_TEMPLATE.format(project_id=project_id))


@mcp.prompt(name="daily-review", description=prompts.PROMPTS["daily-review"][1])
def daily_review_prompt() -> str:
    return prompts.daily_review()


@mcp.prompt(name="plan-project", description=prompts.PROMPTS["plan-project"][1])
def plan_project_prompt(project_name: str = "") -> str:
    return prompts.plan_project(project_name)


@mcp.prompt(name="report-status", description=prompts.PROMPTS["report-status"][1])
def report_status_prompt(time_range: str = "") -> str:
    return prompts.report_status(time_range)


@mcp.prompt(name="sprint-planning", description=prompts.PROMPTS["sprint-planning"][1])
def sprint_planning_prompt(sprint_duration: str = "") -> str:
    return prompts.sprint_planning(sprint_duration)


@mcp.prompt(name="track-agent-work", description=prompts.PROMPTS["track-agent-work"][1])
def track_agent_work_prompt() -> str:
    return prompts.track_agent_work()


@mcp.prompt(name="coordinate-tasks", description=prompts.PROMPTS["coordinate-tasks"][1])
def coordinate_tasks_prompt() -> str:
    return prompts.coordinate_tasks()


def run_server(
    db: Optional[TrackerDatabase] = None, transport: str = "stdio", port: int = 8000
):
    """Run the MCP server.

    Args:
        db: Database to serve; defaults to the one named by the environment.
        transport: "stdio" or "streamable-http".
        port: Port for the HTTP transport.
    """
    if db is not None:
        configure(db)
    registry = _get_registry()
    logger.info("Serving %s over %s", registry.db.db_path, transport)
    if transport == "streamable-http":
        mcp.settings.port = port
        mcp.run(transport="streamable-http")
    else:
        mcp.run(transport="stdio")
