"""Tests for the read-only resources."""

from datetime import datetime, timedelta, timezone

from tasktrack.models import Priority, TaskCreate
from tasktrack.resources import (
    HIGH_PRIORITY_URI,
    OVERDUE_URI,
    PENDING_URI,
    PROJECTS_URI,
    RESOURCES,
    STATS_URI,
    TASKS_URI,
    read_resource,
)


def _create(db, project, description, **kwargs):
    return db.create_task(TaskCreate(project_id=project.id, description=description, **kwargs))


class TestEnvelope:
    def test_shape(self, db, project):
        _create(db, project, "one")
        result = read_resource(db, TASKS_URI)

        assert set(result) == {"metadata", "data", "links"}
        metadata = result["metadata"]
        assert metadata["resource_uri"] == TASKS_URI
        assert metadata["count"] == 1
        assert metadata["filters"] == {}
        assert datetime.fromisoformat(metadata["timestamp"]).tzinfo is not None
        assert result["data"][0]["description"] == "one"
        assert result["links"]["stats"] == STATS_URI

    def test_every_fixed_uri_readable(self, db, project):
        for spec in RESOURCES:
            result = read_resource(db, spec.uri)
            assert "error" not in result, spec.uri
            assert result["metadata"]["resource_uri"] == spec.uri

    def test_unknown_uri(self, db):
        result = read_resource(db, "tasktrack://nope")
        assert result["error"]["type"] == "not_found"


class TestViews:
    def test_projects(self, db, project):
        result = read_resource(db, PROJECTS_URI)
        assert result["metadata"]["count"] == 1
        assert result["data"][0]["name"] == "backend"

    def test_pending(self, db, project):
        _create(db, project, "open")
        closed = _create(db, project, "closed")
        db.mark_done(closed.id)

        result = read_resource(db, PENDING_URI)
        assert [t["description"] for t in result["data"]] == ["open"]
        assert result["metadata"]["filters"] == {"done": False}

    def test_high_priority(self, db, project):
        _create(db, project, "urgent", priority=Priority.HIGH)
        _create(db, project, "meh", priority=Priority.LOW)

        result = read_resource(db, HIGH_PRIORITY_URI)
        assert [t["description"] for t in result["data"]] == ["urgent"]
        assert result["metadata"]["filters"] == {"priority": "high"}

    def test_overdue_drops_completed_task(self, db, project):
        now = datetime.now(timezone.utc)
        late = _create(db, project, "late", due_date=now - timedelta(days=1))
        _create(db, project, "later", due_date=now + timedelta(days=2))

        before = read_resource(db, OVERDUE_URI)
        assert [t["id"] for t in before["data"]] == [late.id]

        db.mark_done(late.id)
        after = read_resource(db, OVERDUE_URI)
        assert after["data"] == []
        assert after["metadata"]["count"] == 0

    def test_stats(self, db, project):
        _create(db, project, "one")
        result = read_resource(db, STATS_URI)
        assert result["metadata"]["count"] == 1
        assert result["data"]["summary"]["total_tasks"] == 1
        assert result["data"]["by_priority"] == {"none": 1}

    def test_reads_see_external_writes(self, db, project, tmp_path):
        from tasktrack.db import TrackerDatabase

        assert read_resource(db, TASKS_URI)["metadata"]["count"] == 0
        writer = TrackerDatabase(db.db_path)
        try:
            writer.create_task(TaskCreate(project_id=project.id, description="from cli"))
        finally:
            writer.close()
        assert read_resource(db, TASKS_URI)["metadata"]["count"] == 1


class TestProjectTasksTemplate:
    def test_scoped_to_project(self, db, project):
        other = db.create_project("frontend")
        _create(db, project, "mine")
        _create(db, other, "theirs")

        uri = f"tasktrack://projects/{project.id}/tasks"
        result = read_resource(db, uri)
        assert [t["description"] for t in result["data"]] == ["mine"]
        assert result["metadata"]["resource_uri"] == uri
        assert result["metadata"]["filters"] == {"project_id": project.id}

    def test_bad_uuid(self, db):
        result = read_resource(db, "tasktrack://projects/not-a-uuid/tasks")
        assert result["error"]["type"] == "validation"

    def test_missing_project(self, db):
        result = read_resource(
            db, "tasktrack://projects/00000000-0000-4000-8000-000000000000/tasks"
        )
        assert result["error"]["type"] == "not_found"
