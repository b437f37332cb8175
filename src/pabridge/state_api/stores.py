"""State store interface and the in-memory implementation.

Stores take raw entries from a POST body and return the full records
they saved. Entries that fail validation, or carry an id that does not
resolve to an existing record, are skipped.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

import structlog

from pabridge.state_api.records import (
    PROJECT_DEFAULTS,
    TASK_DEFAULTS,
    clean_project,
    clean_task,
    entry_id,
)

logger = structlog.get_logger()


class StateStore(Protocol):
    """Storage behind the /state endpoints."""

    async def list_tasks(self) -> list[dict[str, Any]]:
        ...

    async def save_tasks(self, entries: list[Any]) -> list[dict[str, Any]]:
        """Create (no id) or update (id) each valid entry."""
        ...

    async def list_projects(self) -> list[dict[str, Any]]:
        ...

    async def save_projects(self, entries: list[Any]) -> list[dict[str, Any]]:
        ...

    async def close(self) -> None:
        ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryStateStore:
    """Per-process store. Contents vanish on restart."""

    def __init__(self) -> None:
        self._tasks: dict[str, dict[str, Any]] = {}
        self._projects: dict[str, dict[str, Any]] = {}
        self._next_task_id = 1
        self._next_project_id = 1

    async def list_tasks(self) -> list[dict[str, Any]]:
        return [dict(t) for t in self._tasks.values()]

    async def list_projects(self) -> list[dict[str, Any]]:
        return [_copy_project(p) for p in self._projects.values()]

    async def save_tasks(self, entries: list[Any]) -> list[dict[str, Any]]:
        saved: list[dict[str, Any]] = []
        for raw in entries:
            fields = clean_task(raw)
            if fields is None:
                continue
            task_id = entry_id(raw)
            now = _now_iso()
            if task_id is None:
                task_id = f"t_{self._next_task_id}"
                self._next_task_id += 1
                record = {"id": task_id, **TASK_DEFAULTS, **fields, "created_at": now, "updated_at": now}
                self._tasks[task_id] = record
            else:
                record = self._tasks.get(task_id)
                if record is None:
                    logger.warning("state_task_unknown_id", task_id=task_id)
                    continue
                record.update(fields, updated_at=now)
            saved.append(dict(record))
        return saved

    async def save_projects(self, entries: list[Any]) -> list[dict[str, Any]]:
        saved: list[dict[str, Any]] = []
        for raw in entries:
            fields = clean_project(raw)
            if fields is None:
                continue
            project_id = entry_id(raw)
            now = _now_iso()
            if project_id is None:
                project_id = f"p_{self._next_project_id}"
                self._next_project_id += 1
                record = {
                    "id": project_id,
                    **_copy_project(PROJECT_DEFAULTS),
                    **fields,
                    "created_at": now,
                    "updated_at": now,
                }
                self._projects[project_id] = record
            else:
                record = self._projects.get(project_id)
                if record is None:
                    logger.warning("state_project_unknown_id", project_id=project_id)
                    continue
                record.update(fields, updated_at=now)
            saved.append(_copy_project(record))
        return saved

    async def close(self) -> None:
        return None


def _copy_project(project: dict[str, Any]) -> dict[str, Any]:
    return {
        **project,
        "milestones": list(project.get("milestones") or []),
        "risks": list(project.get("risks") or []),
    }
