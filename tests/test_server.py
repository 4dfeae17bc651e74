"""Tests for the FastMCP wiring."""

import asyncio
import json
import re

import pytest

from tasktrack import server
from tasktrack.resources import PROJECT_TASKS_TEMPLATE, RESOURCES, TASKS_URI
from tasktrack.schema import DATE_TIME
from tasktrack.tools import TOOLS


@pytest.fixture(autouse=True)
def configured(db):
    server.configure(db)
    yield
    server._registry = None


def _structured(result):
    """Tool result as a dict across FastMCP return conventions."""
    if isinstance(result, tuple):
        result = result[0]
    return json.loads(result[0].text)


def _enum(prop: dict):
    """Enum values of a property, looking inside an Optional's anyOf."""
    for option in [prop, *prop.get("anyOf", [])]:
        if "enum" in option:
            return option["enum"]
    return None


def _read(uri: str) -> dict:
    contents = list(asyncio.run(server.mcp.read_resource(uri)))
    return json.loads(contents[0].content)


class TestTools:
    def test_advertised_schema_matches_declarations(self):
        advertised = {tool.name: tool for tool in asyncio.run(server.mcp.list_tools())}
        assert set(advertised) == {spec.name for spec in TOOLS}

        for spec in TOOLS:
            schema = advertised[spec.name].inputSchema
            assert set(schema.get("properties", {})) == {p.name for p in spec.params}, spec.name
            assert set(schema.get("required", [])) == set(spec.required), spec.name
            assert advertised[spec.name].description == spec.description

            for param in spec.params:
                prop = schema["properties"][param.name]
                assert prop["description"] == param.description, (spec.name, param.name)
                if param.enum:
                    assert _enum(prop) == list(param.enum), (spec.name, param.name)
                if param.format == DATE_TIME:
                    assert prop["format"] == "date-time", (spec.name, param.name)

    def test_priority_enum_advertised(self):
        advertised = {tool.name: tool for tool in asyncio.run(server.mcp.list_tools())}
        for name in ("create_task", "list_tasks", "update_task"):
            prop = advertised[name].inputSchema["properties"]["priority"]
            assert _enum(prop) == ["low", "medium", "high"]
        due = advertised["create_task"].inputSchema["properties"]["due_date"]
        assert due["format"] == "date-time"

    def test_call_tool(self):
        created = _structured(
            asyncio.run(server.mcp.call_tool("create_task", {"description": "buy milk"}))
        )
        assert created["description"] == "buy milk"

        done = _structured(
            asyncio.run(server.mcp.call_tool("mark_done", {"task_id": created["id"][:6]}))
        )
        assert done["done"] is True

    def test_errors_are_results(self):
        result = server.get_task(task_id="ffffff")
        assert result["error"]["type"] == "not_found"

    def test_wrappers_delegate(self):
        project = server.create_project(name="api", path="/srv/api")
        task = server.create_task(
            description="add endpoint",
            project_id=project["id"],
            priority="medium",
            labels=["http"],
        )
        listed = server.list_tasks(label="http")
        assert [t["id"] for t in listed["tasks"]] == [task["id"]]
        assert server.list_labels()["labels"] == ["http"]

        server.add_label(task_id=task["id"], label="v2")
        server.remove_label(task_id=task["id"], label="http")
        assert server.get_task(task_id=task["id"])["labels"] == ["v2"]

        server.update_task(task_id=task["id"], priority="high")
        server.mark_done(task_id=task["id"])
        assert server.mark_undone(task_id=task["id"])["done"] is False
        assert server.delete_task(task_id=task["id"])["success"] is True
        assert server.delete_project(project_id=project["id"])["success"] is True
        assert server.list_projects()["count"] == 0


class TestResources:
    def test_fixed_resources_registered(self):
        listed = {str(r.uri).rstrip("/") for r in asyncio.run(server.mcp.list_resources())}
        assert {spec.uri for spec in RESOURCES} <= listed

    def test_template_registered(self):
        templates = asyncio.run(server.mcp.list_resource_templates())
        assert [t.uriTemplate for t in templates] == [PROJECT_TASKS_TEMPLATE]

    def test_read_tasks(self, db, project):
        server.create_task(description="visible", project_id=project.id)
        result = _read(TASKS_URI)
        assert result["metadata"]["count"] == 1
        assert result["data"][0]["description"] == "visible"

    def test_read_template(self, db, project):
        server.create_task(description="scoped", project_id=project.id)
        result = _read(f"tasktrack://projects/{project.id}/tasks")
        assert [t["description"] for t in result["data"]] == ["scoped"]


class TestPrompts:
    def test_listed(self):
        names = {p.name for p in asyncio.run(server.mcp.list_prompts())}
        assert names == {
            "daily-review",
            "plan-project",
            "report-status",
            "sprint-planning",
            "track-agent-work",
            "coordinate-tasks",
        }

    def test_plan_project_argument(self):
        result = asyncio.run(
            server.mcp.get_prompt("plan-project", {"project_name": "apollo"})
        )
        text = result.messages[0].content.text
        assert "apollo" in text
        assert "create_task" in text

    def test_defaults(self):
        result = asyncio.run(server.mcp.get_prompt("report-status", {}))
        assert "this week" in result.messages[0].content.text

    def test_sprint_duration(self):
        default = asyncio.run(server.mcp.get_prompt("sprint-planning", {}))
        assert "2 weeks" in default.messages[0].content.text

        custom = asyncio.run(
            server.mcp.get_prompt("sprint-planning", {"sprint_duration": "10 days"})
        )
        text = custom.messages[0].content.text
        assert "10 days" in text
        assert "2 weeks" not in text

    def test_agent_workflows_name_real_tools(self):
        tool_names = {spec.name for spec in TOOLS}
        for name in ("track-agent-work", "coordinate-tasks"):
            text = asyncio.run(server.mcp.get_prompt(name, {})).messages[0].content.text
            called = set(re.findall(r"`(\w+)\(", text))
            assert "list_tasks" in called
            assert called <= tool_names, name
