"""Validation and shaping of incoming task/project entries.

``clean_task`` / ``clean_project`` return only the fields the caller
actually sent (normalized), or None when the entry is unusable. Stores
apply defaults on create and merge the cleaned fields on update.
"""

from __future__ import annotations

from typing import Any

from pabridge.core.canonical import coerce_due

TASK_STATUSES = frozenset({"open", "blocked", "done", "removed"})
PRIORITIES = frozenset({"high", "medium", "low"})
PROJECT_STATUSES = frozenset({"active", "paused", "done", "archived"})

TASK_DEFAULTS: dict[str, Any] = {
    "context": "",
    "status": "open",
    "due": None,
    "priority_hint": None,
    "project_id": None,
    "project_hint": None,
    "source_ref": None,
}
PROJECT_DEFAULTS: dict[str, Any] = {
    "description": "",
    "status": "active",
    "deadline": None,
    "milestones": [],
    "risks": [],
}


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def entry_id(raw: dict[str, Any]) -> str | None:
    return _opt_str(raw.get("id"))


def clean_task(raw: Any) -> dict[str, Any] | None:
    """Normalized fields of a task entry; None without a non-empty title."""
    if not isinstance(raw, dict):
        return None
    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        return None

    fields: dict[str, Any] = {"title": title.strip()}
    if "context" in raw:
        fields["context"] = raw["context"] if isinstance(raw["context"], str) else ""
    if "status" in raw:
        fields["status"] = raw["status"] if raw["status"] in TASK_STATUSES else "open"
    if "due" in raw:
        fields["due"] = coerce_due(raw["due"])
    if "priority_hint" in raw:
        fields["priority_hint"] = raw["priority_hint"] if raw["priority_hint"] in PRIORITIES else None
    for key in ("project_id", "project_hint", "source_ref"):
        if key in raw:
            fields[key] = _opt_str(raw[key])
    return fields


def _entries(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def clean_project(raw: Any) -> dict[str, Any] | None:
    """Normalized fields of a project entry; None without a non-empty name."""
    if not isinstance(raw, dict):
        return None
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        return None

    fields: dict[str, Any] = {"name": name.strip()}
    if "description" in raw:
        fields["description"] = raw["description"] if isinstance(raw["description"], str) else ""
    if "status" in raw:
        fields["status"] = raw["status"] if raw["status"] in PROJECT_STATUSES else "active"
    if "deadline" in raw:
        fields["deadline"] = coerce_due(raw["deadline"])
    for key in ("milestones", "risks"):
        if key in raw:
            fields[key] = _entries(raw[key])
    return fields
