"""Slack mrkdwn rendering for every message the bridge posts."""

from __future__ import annotations

from typing import Any

MAX_MESSAGE_CHARS = 3900

NOTHING_FOUND = "I couldn't find a log message from you before this one to summarize."
NO_ACTIONABLE_TASKS = "No actionable tasks found in the latest summary."
NO_PENDING_BATCH = "There is no pending task batch to confirm right now."
NO_VALID_NUMBERS = "None of those numbers match a proposed task. Nothing was saved."
SAVE_FAILED = "Sorry, saving the tasks failed. The proposal is still pending, try again in a moment."
NO_CACHED_LIST = "I don't have a task list cached yet. Wait for the next briefing."
NO_MATCHING_NUMBERS = "None of those numbers match the last task list."
UPDATE_FAILED = "Sorry, updating those tasks failed. Nothing was changed."
GENERIC_APOLOGY = "Sorry, something went wrong handling that message."


def _truncate(text: str, limit: int = MAX_MESSAGE_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def render_summary(content: str) -> str:
    return _truncate(f"*Summary*\n{content}")


def _task_details(task: dict[str, Any]) -> str:
    details = []
    if task.get("due"):
        details.append(f"due {task['due']}")
    if task.get("priority_hint"):
        details.append(task["priority_hint"])
    if task.get("project_hint"):
        details.append(f"project: {task['project_hint']}")
    return f" ({', '.join(details)})" if details else ""


def render_proposal(tasks: list[dict[str, Any]]) -> str:
    """Numbered (1-based) proposal in batch order, with reply instructions."""
    lines = ["*Proposed tasks*"]
    for number, task in enumerate(tasks, start=1):
        lines.append(f"{number}. {task.get('title') or 'Untitled task'}{_task_details(task)}")
        if task.get("context"):
            lines.append(f"    _{task['context']}_")
    lines.append("")
    lines.append("Reply `keep all` or `keep: 1,3` to save tasks.")
    return _truncate("\n".join(lines))


def render_saved(count: int) -> str:
    noun = "task" if count == 1 else "tasks"
    return f"Saved {count} {noun}."


def render_ops_error(where: str, error: BaseException | str) -> str:
    return _truncate(f":warning: `{where}` failed: {error}")
