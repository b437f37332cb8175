"""Daily briefing normalization and the no-LLM fallback briefing.

Briefing shape::

    {
      "daily_message": "text for the broadcast channel",
      "actionable_list": {
        "message": "numbered list for the inbox channel",
        "tasks": [{"id": "...", "title": "...", "score": 0.8, ...}],
      },
    }

Every task in ``actionable_list.tasks`` carries a persisted id, because
the list becomes the target of ``done 2`` style commands.
"""

from __future__ import annotations

import math
from typing import Any

import structlog

logger = structlog.get_logger()

DEFAULT_DAILY_MESSAGE = "No daily briefing available."
DEFAULT_ACTIONABLE_MESSAGE = "No actionable tasks listed."
FALLBACK_DAILY_MESSAGE = (
    "Good morning! The briefing generator is unavailable today, "
    "so here are the top open tasks."
)
FALLBACK_EMPTY_MESSAGE = "No open tasks. Enjoy the quiet day."
FALLBACK_LIMIT = 5

_PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}
_CLOSED_STATUSES = frozenset({"done", "removed"})


def task_id(task: Any) -> str | None:
    """The task's id as a non-blank string, or None."""
    value = task.get("id") if isinstance(task, dict) else None
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_score(value: Any) -> float | None:
    """Numbers (or numeric strings) become floats; everything else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _text_or(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


def normalize_briefing(
    payload: Any,
    source_tasks: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Shape a decoded briefing payload.

    Entries without an id are dropped. Entries whose id matches one of
    *source_tasks* take the persisted fields from it, keeping the
    model's score and extra commentary.
    """
    data = payload if isinstance(payload, dict) else {}
    actionable = data.get("actionable_list")
    if not isinstance(actionable, dict):
        actionable = {}

    by_id = {
        task_id(t): t
        for t in (source_tasks or [])
        if task_id(t) is not None
    }

    tasks: list[dict[str, Any]] = []
    raw_tasks = actionable.get("tasks")
    for raw in raw_tasks if isinstance(raw_tasks, list) else []:
        raw_id = task_id(raw)
        if raw_id is None:
            continue
        entry = {**raw, **by_id.get(raw_id, {})}
        entry["id"] = raw_id
        entry["score"] = coerce_score(raw.get("score"))
        tasks.append(entry)

    dropped = len(raw_tasks) - len(tasks) if isinstance(raw_tasks, list) else 0
    if dropped:
        logger.info("briefing_tasks_dropped", dropped=dropped)

    return {
        "daily_message": _text_or(data.get("daily_message"), DEFAULT_DAILY_MESSAGE),
        "actionable_list": {
            "message": _text_or(actionable.get("message"), DEFAULT_ACTIONABLE_MESSAGE),
            "tasks": tasks,
        },
    }


def _rank(position: int, task: dict[str, Any]) -> tuple[int, int, str, int]:
    priority = _PRIORITY_RANK.get(task.get("priority_hint") or "", 3)
    due = task.get("due")
    has_due = isinstance(due, str) and bool(due)
    return (priority, 0 if has_due else 1, due if has_due else "", position)


def top_open_tasks(tasks: list[dict[str, Any]], limit: int = FALLBACK_LIMIT) -> list[dict[str, Any]]:
    """Open tasks with an id, highest priority then earliest due first."""
    candidates = [
        (i, t)
        for i, t in enumerate(tasks)
        if isinstance(t, dict)
        and task_id(t) is not None
        and t.get("status", "open") not in _CLOSED_STATUSES
    ]
    candidates.sort(key=lambda pair: _rank(*pair))
    return [t for _, t in candidates[:limit]]


def format_task_line(number: int, task: dict[str, Any]) -> str:
    line = f"{number}. {task.get('title') or 'Untitled task'}"
    details = [d for d in (task.get("due") and f"due {task['due']}", task.get("priority_hint")) if d]
    if details:
        line += f" ({', '.join(details)})"
    return line


def build_fallback_briefing(tasks: list[dict[str, Any]]) -> dict[str, Any]:
    """Best-effort briefing straight from the task list, no LLM involved."""
    top = top_open_tasks(tasks)
    if not top:
        return {
            "daily_message": FALLBACK_DAILY_MESSAGE,
            "actionable_list": {"message": FALLBACK_EMPTY_MESSAGE, "tasks": []},
        }

    lines = [format_task_line(i, t) for i, t in enumerate(top, start=1)]
    message = "Top tasks for today:\n" + "\n".join(lines)
    return {
        "daily_message": FALLBACK_DAILY_MESSAGE,
        "actionable_list": {
            "message": message,
            "tasks": [{**t, "id": task_id(t), "score": None} for t in top],
        },
    }
