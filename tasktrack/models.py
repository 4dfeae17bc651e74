"""Pydantic models for the task tracker."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Priority(str, Enum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Project(BaseModel):
    """A named container for tasks."""

    id: str = Field(description="Project UUID")
    name: str = Field(description="Unique project name")
    directory_path: Optional[str] = Field(
        default=None, description="Associated directory (absolute path)"
    )
    created_at: datetime = Field(description="Creation timestamp")


class Label(BaseModel):
    """A globally scoped tag that can be attached to many tasks."""

    id: int = Field(description="Label identifier")
    name: str = Field(description="Unique label name")


class Task(BaseModel):
    """A unit of work belonging to exactly one project."""

    id: str = Field(description="Task UUID")
    project_id: str = Field(description="Owning project UUID")
    description: str = Field(description="What needs doing")
    done: bool = Field(default=False, description="Completion flag")
    priority: Optional[Priority] = Field(default=None, description="Task priority")
    notes: Optional[str] = Field(default=None, description="Free-text notes")
    due_date: Optional[datetime] = Field(default=None, description="Due timestamp")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")
    completed_at: Optional[datetime] = Field(
        default=None, description="Completion timestamp"
    )
    labels: list[str] = Field(default_factory=list, description="Label names")

    def mark_done(self, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        if not self.done:
            self.completed_at = now
        self.done = True
        self.updated_at = now

    def mark_undone(self, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self.done = False
        self.completed_at = None
        self.updated_at = now

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """True when an open task's due day is before today (UTC calendar days).

        A task due later today is not overdue yet.
        """
        if self.done or self.due_date is None:
            return False
        now = now or utcnow()
        return _utc_day(self.due_date) < _utc_day(now)

    @property
    def short_id(self) -> str:
        return self.id[:8]


def _utc_day(value: datetime):
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).date()


class TaskCreate(BaseModel):
    """Input for creating a task."""

    project_id: str = Field(description="Owning project UUID")
    description: str = Field(description="What needs doing")
    priority: Optional[Priority] = Field(default=None, description="Task priority")
    notes: Optional[str] = Field(default=None, description="Free-text notes")
    due_date: Optional[datetime] = Field(default=None, description="Due timestamp")
    labels: list[str] = Field(default_factory=list, description="Labels to attach")


class TaskUpdate(BaseModel):
    """Input for updating a task.

    Only fields that are set are written; ``clear_due_date`` and
    ``clear_priority`` remove the stored value.
    """

    description: Optional[str] = Field(default=None, description="New description")
    priority: Optional[Priority] = Field(default=None, description="New priority")
    notes: Optional[str] = Field(default=None, description="New notes")
    due_date: Optional[datetime] = Field(default=None, description="New due date")
    clear_priority: bool = Field(default=False, description="Remove the priority")
    clear_due_date: bool = Field(default=False, description="Remove the due date")


class TaskFilter(BaseModel):
    """Filters for listing tasks. Every supplied predicate must hold."""

    project_id: Optional[str] = Field(default=None, description="Filter by project")
    done: Optional[bool] = Field(default=None, description="Filter by completion")
    priority: Optional[Priority] = Field(default=None, description="Filter by priority")
    label: Optional[str] = Field(default=None, description="Filter by label name")
    overdue: Optional[bool] = Field(default=None, description="Filter by overdue state")

    def applied(self) -> dict:
        """The predicates that were actually supplied, JSON-friendly."""
        return {
            key: (value.value if isinstance(value, Enum) else value)
            for key, value in self.model_dump().items()
            if value is not None
        }


class ProjectCount(BaseModel):
    """Task count for one project."""

    project_id: str
    project_name: str
    task_count: int


class OldestPending(BaseModel):
    """The oldest incomplete task."""

    id: str
    description: str
    age_days: int


class StatsSummary(BaseModel):
    """Overall task counts."""

    total_tasks: int = 0
    pending: int = 0
    completed: int = 0
    overdue: int = 0


class Stats(BaseModel):
    """Summary statistics over every task."""

    summary: StatsSummary
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_project: list[ProjectCount] = Field(default_factory=list)
    oldest_pending: Optional[OldestPending] = None
