"""Async client for the remote state API (tasks and projects).

    GET  {base}/state/tasks      -> {"tasks": [...]}
    POST {base}/state/tasks      -> {"tasks": [...]}   create (no id) / update (id)
    GET  {base}/state/projects   -> {"projects": [...]}
    POST {base}/state/projects   -> {"projects": [...]}

Every failure raises ``StateAPIError`` with a descriptive message: network
errors, non-2xx responses, bodies that are not JSON, bodies missing the
expected list, and writes that come back empty. Nothing is swallowed into
an empty list.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from pabridge.config import settings

logger = structlog.get_logger()

_client: StateClient | None = None


class StateAPIError(Exception):
    """State API call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def task_payload(task: dict[str, Any]) -> dict[str, Any]:
    """Wire form of a task: known fields only, with create-time defaults."""
    return {
        "id": task.get("id") or None,
        "title": task.get("title") or "",
        "context": task.get("context") or "",
        "status": task.get("status") or "open",
        "due": task.get("due") or None,
        "priority_hint": task.get("priority_hint") or None,
        "project_id": task.get("project_id") or None,
        "project_hint": task.get("project_hint") or None,
        "source_ref": task.get("source_ref") or None,
    }


def project_payload(project: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": project.get("id") or None,
        "name": project.get("name") or "",
        "description": project.get("description") or "",
        "status": project.get("status") or "active",
        "deadline": project.get("deadline") or None,
        "milestones": list(project.get("milestones") or []),
        "risks": list(project.get("risks") or []),
    }


class StateClient:
    """Thin wrapper over the state API endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, key: str, body: dict[str, Any] | None = None) -> list[Any]:
        if not self._base_url:
            raise StateAPIError("State API base URL not configured")

        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method, url, json=body)
        except httpx.HTTPError as e:
            logger.error("state_api_request_failed", method=method, path=path, error=str(e))
            raise StateAPIError(f"{method} {path} failed: {e}") from e

        if not resp.is_success:
            logger.error(
                "state_api_error_status",
                method=method,
                path=path,
                status_code=resp.status_code,
                response=resp.text[:500],
            )
            raise StateAPIError(
                f"{method} {path} returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise StateAPIError(f"{method} {path} returned a non-JSON body") from e

        items = data.get(key) if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise StateAPIError(f"{method} {path} response has no '{key}' list")
        return items

    # ── Tasks ──────────────────────────────────────────────────

    async def list_tasks(self) -> list[dict[str, Any]]:
        tasks = await self._request("GET", "/state/tasks", "tasks")
        logger.info("state_tasks_listed", count=len(tasks))
        return tasks

    async def create_tasks(self, tasks: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Create tasks; returns the records the API reports as saved."""
        payload = [{**task_payload(t), "id": None} for t in tasks]
        return await self._write_tasks(payload, "create")

    async def update_tasks(self, tasks: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Update persisted tasks (each must carry an id)."""
        missing = [t for t in tasks if not t.get("id")]
        if missing:
            raise StateAPIError(f"{len(missing)} task update(s) without an id")
        return await self._write_tasks([task_payload(t) for t in tasks], "update")

    async def _write_tasks(self, payload: list[dict[str, Any]], op: str) -> list[dict[str, Any]]:
        if not payload:
            raise StateAPIError(f"No tasks to {op}")
        saved = await self._request("POST", "/state/tasks", "tasks", {"tasks": payload})
        if not saved:
            raise StateAPIError(f"State API saved none of {len(payload)} task(s) ({op})")
        logger.info("state_tasks_saved", op=op, sent=len(payload), saved=len(saved))
        return saved

    # ── Projects ───────────────────────────────────────────────

    async def list_projects(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/state/projects", "projects")

    async def save_projects(self, projects: list[dict[str, Any]]) -> list[dict[str, Any]]:
        payload = [project_payload(p) for p in projects]
        if not payload:
            raise StateAPIError("No projects to save")
        saved = await self._request("POST", "/state/projects", "projects", {"projects": payload})
        if not saved:
            raise StateAPIError(f"State API saved none of {len(payload)} project(s)")
        logger.info("state_projects_saved", sent=len(payload), saved=len(saved))
        return saved


def get_state_client() -> StateClient:
    """Return the singleton client built from settings."""
    global _client
    if _client is None:
        _client = StateClient(
            base_url=settings.state_api_base_url,
            timeout=settings.state_api_timeout,
        )
    return _client
