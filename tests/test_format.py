"""Tests for terminal formatting."""

from datetime import datetime, timezone

from rich.text import Text

from tasktrack.format import (
    format_project_header,
    format_separator,
    format_stats,
    format_task,
)
from tasktrack.models import (
    OldestPending,
    Priority,
    Project,
    ProjectCount,
    Stats,
    StatsSummary,
    Task,
)

NOW = datetime(2025, 6, 10, 12, 0, tzinfo=timezone.utc)


def _plain(markup: str) -> str:
    return Text.from_markup(markup).plain


def _task(**kwargs) -> Task:
    fields = dict(
        id="3f2a9c10-0000-4000-8000-000000000000",
        project_id="p",
        description="write docs",
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(kwargs)
    return Task(**fields)


class TestFormatTask:
    def test_minimal(self):
        assert _plain(format_task(_task(), NOW)) == "  3f2a9c  write docs"

    def test_done_and_priority(self):
        task = _task(done=True, completed_at=NOW, priority=Priority.HIGH)
        assert _plain(format_task(task, NOW)) == "  ✓ 3f2a9c  [HIGH] write docs"

    def test_overdue_due_date(self):
        task = _task(due_date=datetime(2025, 6, 9, tzinfo=timezone.utc))
        second_line = _plain(format_task(task, NOW)).splitlines()[1]
        assert second_line.strip() == "Due: 2025-06-09 (overdue)"

    def test_due_today_not_overdue(self):
        task = _task(due_date=datetime(2025, 6, 10, 23, 0, tzinfo=timezone.utc))
        assert "overdue" not in _plain(format_task(task, NOW))

    def test_done_task_never_overdue(self):
        task = _task(
            done=True,
            completed_at=NOW,
            due_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        assert "overdue" not in _plain(format_task(task, NOW))

    def test_labels(self):
        task = _task(labels=["backend", "bug"], due_date=datetime(2025, 7, 1, tzinfo=timezone.utc))
        second_line = _plain(format_task(task, NOW)).splitlines()[1]
        assert second_line.strip() == "Due: 2025-07-01 | Labels: backend, bug"

    def test_markup_in_description_escaped(self):
        task = _task(description="fix [bold]tags[/bold]")
        assert _plain(format_task(task, NOW)).endswith("fix [bold]tags[/bold]")


class TestFormatProject:
    def test_header(self):
        project = Project(id="x", name="api", directory_path="/srv/api", created_at=NOW)
        assert _plain(format_project_header(project)) == "PROJECT: api (/srv/api)"

    def test_header_without_path(self):
        project = Project(id="x", name="api", created_at=NOW)
        assert _plain(format_project_header(project)) == "PROJECT: api"

    def test_separator(self):
        assert set(_plain(format_separator())) == {"─"}


class TestFormatStats:
    def test_summary(self):
        stats = Stats(
            summary=StatsSummary(total_tasks=3, pending=2, completed=1, overdue=1),
            by_priority={"high": 2, "none": 1},
            by_project=[ProjectCount(project_id="x", project_name="api", task_count=3)],
            oldest_pending=OldestPending(
                id="3f2a9c10-0000-4000-8000-000000000000",
                description="write docs",
                age_days=4,
            ),
        )
        text = _plain(format_stats(stats))
        assert "Total: 3  Pending: 2  Completed: 1  Overdue: 1" in text
        assert "By priority: high 2, none 1" in text
        assert "api: 3" in text
        assert "Oldest pending: 3f2a9c write docs (4 days)" in text
