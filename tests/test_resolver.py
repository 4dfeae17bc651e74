"""Tests for task ID prefix resolution."""

import pytest

from tasktrack.errors import AmbiguousError, NotFoundError, ValidationError
from tasktrack.models import TaskCreate

ID_A = "abcdef12-0000-4000-8000-000000000001"
ID_B = "abcdef34-0000-4000-8000-000000000002"
ID_C = "12345678-0000-4000-8000-000000000003"


@pytest.fixture
def tasks(db, project, fixed_ids):
    fixed_ids(ID_A, ID_B, ID_C)
    return [
        db.create_task(TaskCreate(project_id=project.id, description=name))
        for name in ("alpha", "beta", "gamma")
    ]


class TestResolveTask:
    def test_full_id(self, db, tasks):
        assert db.resolve_task(ID_A).description == "alpha"

    def test_unique_prefix(self, db, tasks):
        assert db.resolve_task("123456").id == ID_C
        assert db.resolve_task("abcdef1").id == ID_A

    def test_ambiguous_prefix_lists_candidates(self, db, tasks):
        with pytest.raises(AmbiguousError) as exc_info:
            db.resolve_task("abcdef")
        err = exc_info.value
        assert err.candidates == ["abcdef12", "abcdef34"]
        assert "abcdef12" in err.message and "abcdef34" in err.message
        assert err.to_dict()["type"] == "ambiguous"
        assert err.to_dict()["candidates"] == ["abcdef12", "abcdef34"]

    def test_short_prefix_rejected(self, db, tasks):
        with pytest.raises(ValidationError) as exc_info:
            db.resolve_task("abcde")
        assert "at least 6" in exc_info.value.message

    def test_uppercase_rejected(self, db, tasks):
        with pytest.raises(ValidationError):
            db.resolve_task("ABCDEF12")

    def test_glob_characters_rejected(self, db, tasks):
        with pytest.raises(ValidationError):
            db.resolve_task("abcde*")

    def test_no_match(self, db, tasks):
        with pytest.raises(NotFoundError) as exc_info:
            db.resolve_task("ffffff")
        assert "list_tasks" in exc_info.value.suggestion

    def test_resolved_task_has_labels(self, db, tasks):
        db.add_label(ID_C, "bug")
        assert db.resolve_task("123456").labels == ["bug"]
