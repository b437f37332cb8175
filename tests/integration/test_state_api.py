"""Integration tests for the state API over both store implementations.

The app is driven in-process through ``httpx.ASGITransport``. The
transport does not run the lifespan, so table stores are initialized by
the fixture.

Run with: pytest tests/integration/test_state_api.py -v
"""

from __future__ import annotations

from typing import Any, AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from pabridge.state_api.app import build_store, create_app
from pabridge.state_api.stores import InMemoryStateStore
from pabridge.state_api.tables import TableStateStore


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path) -> AsyncGenerator[Any, None]:
    if request.param == "memory":
        s = InMemoryStateStore()
    else:
        s = TableStateStore(f"sqlite+aiosqlite:///{tmp_path / 'state.db'}")
        await s.init()
    yield s
    await s.close()


@pytest_asyncio.fixture
async def client(store) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app(store)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://state.test") as c:
        yield c


async def create(client: httpx.AsyncClient, *tasks: dict[str, Any]) -> list[dict[str, Any]]:
    resp = await client.post("/state/tasks", json={"tasks": list(tasks)})
    assert resp.status_code == 200, resp.text
    return resp.json()["tasks"]


# ─────────────────────────────────────────────────────────────────────────────
# Tasks
# ─────────────────────────────────────────────────────────────────────────────

class TestTasks:
    async def test_empty_store(self, client):
        resp = await client.get("/state/tasks")
        assert resp.status_code == 200
        assert resp.json() == {"tasks": []}

    async def test_create_applies_defaults(self, client):
        [task] = await create(client, {"title": "Ship report"})
        assert task["id"]
        assert isinstance(task["id"], str)
        assert task["title"] == "Ship report"
        assert task["status"] == "open"
        assert task["due"] is None
        assert task["context"] == ""

        listed = (await client.get("/state/tasks")).json()["tasks"]
        assert [t["id"] for t in listed] == [task["id"]]

    async def test_create_normalizes_fields(self, client):
        [task] = await create(client, {
            "title": "  Book venue ",
            "status": "bogus",
            "due": "2025-11-14T10:00:00Z",
            "priority_hint": "urgent",
            "project_hint": "Launch",
        })
        assert task["title"] == "Book venue"
        assert task["status"] == "open"
        assert task["due"] == "2025-11-14"
        assert task["priority_hint"] is None
        assert task["project_hint"] == "Launch"

    async def test_update_merges_provided_fields(self, client):
        [task] = await create(client, {"title": "Book venue", "context": "for launch", "due": "2025-11-14"})

        [updated] = await create(client, {"id": task["id"], "title": "Book venue", "status": "done"})

        assert updated["id"] == task["id"]
        assert updated["status"] == "done"
        assert updated["context"] == "for launch"
        assert updated["due"] == "2025-11-14"
        listed = (await client.get("/state/tasks")).json()["tasks"]
        assert len(listed) == 1
        assert listed[0]["status"] == "done"

    async def test_unknown_id_skipped(self, client):
        saved = await create(client, {"id": "999", "title": "Ghost"}, {"title": "Real"})
        assert [t["title"] for t in saved] == ["Real"]

    async def test_invalid_entries_skipped(self, client):
        saved = await create(client, {"title": ""}, "not an object", {"title": "Real"})
        assert [t["title"] for t in saved] == ["Real"]

    @pytest.mark.parametrize("body", [{}, {"tasks": []}, {"tasks": "x"}, [1, 2]])
    async def test_bad_body_shape(self, client, body):
        resp = await client.post("/state/tasks", json=body)
        assert resp.status_code == 400
        assert "tasks" in resp.json()["error"]

    async def test_invalid_json(self, client):
        resp = await client.post(
            "/state/tasks",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid JSON body"}

    async def test_no_valid_entries(self, client):
        resp = await client.post("/state/tasks", json={"tasks": [{"title": "  "}]})
        assert resp.status_code == 400
        assert resp.json() == {"error": "No valid tasks provided"}


# ─────────────────────────────────────────────────────────────────────────────
# Projects
# ─────────────────────────────────────────────────────────────────────────────

class TestProjects:
    async def test_create_and_update(self, client):
        resp = await client.post("/state/projects", json={"projects": [
            {"name": "Launch", "deadline": "2025-12-01", "milestones": ["venue", "press"]},
        ]})
        assert resp.status_code == 200
        [project] = resp.json()["projects"]
        assert project["status"] == "active"
        assert project["deadline"] == "2025-12-01"
        assert project["milestones"] == ["venue", "press"]
        assert project["risks"] == []

        resp = await client.post("/state/projects", json={"projects": [
            {"id": project["id"], "name": "Launch", "status": "paused"},
        ]})
        [updated] = resp.json()["projects"]
        assert updated["status"] == "paused"
        assert updated["milestones"] == ["venue", "press"]

        listed = (await client.get("/state/projects")).json()["projects"]
        assert len(listed) == 1

    async def test_name_required(self, client):
        resp = await client.post("/state/projects", json={"projects": [{"description": "nameless"}]})
        assert resp.status_code == 400
        assert resp.json() == {"error": "No valid projects provided"}


# ─────────────────────────────────────────────────────────────────────────────
# Fallbacks
# ─────────────────────────────────────────────────────────────────────────────

class TestFallbacks:
    @pytest.mark.parametrize(
        "method, path",
        [
            ("GET", "/"),
            ("GET", "/state"),
            ("GET", "/state/tasks/"),
            ("POST", "/state/projects/"),
            ("DELETE", "/state/tasks"),
            ("PUT", "/state/projects"),
        ],
    )
    async def test_not_found(self, client, method, path):
        resp = await client.request(method, path)
        assert resp.status_code == 404
        assert resp.json() == {"error": "Not found"}


class BrokenStore(InMemoryStateStore):
    async def list_tasks(self):
        raise RuntimeError("disk on fire")


async def test_internal_error_is_500():
    transport = httpx.ASGITransport(app=create_app(BrokenStore()))
    async with httpx.AsyncClient(transport=transport, base_url="http://state.test") as c:
        resp = await c.get("/state/tasks")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


def test_build_store():
    assert isinstance(build_store(""), InMemoryStateStore)
    assert isinstance(build_store("sqlite+aiosqlite:///:memory:"), TableStateStore)
