"""tasktrack: a git-aware task tracker with an MCP server for agents."""

__version__ = "0.1.0"

from .db import TrackerDatabase
from .errors import (
    AmbiguousError,
    ConstraintError,
    ContentionError,
    NotFoundError,
    TrackerError,
    ValidationError,
)
from .models import Label, Priority, Project, Task, TaskCreate, TaskFilter, TaskUpdate
from .server import mcp, run_server

__all__ = [
    "mcp",
    "run_server",
    "TrackerDatabase",
    "Task",
    "TaskCreate",
    "TaskUpdate",
    "TaskFilter",
    "Project",
    "Label",
    "Priority",
    "TrackerError",
    "ValidationError",
    "NotFoundError",
    "AmbiguousError",
    "ConstraintError",
    "ContentionError",
]
