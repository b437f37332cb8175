"""Command grammar for the inbox channel.

Every parser here is total: it returns one of the command variants
below and never raises. ``NO_MATCH`` means "not a command", which the
caller ignores without replying.

Keep/drop commands (answer a pending proposal):
    keep all
    keep 1, 3
    keep: 2 4

Task update commands (act on the last posted task list):
    done 2
    remove: 1,3
    reopen 4
    project 1 2: Spring linesheet
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

_KEEP_ALL_RE = re.compile(r"^keep(?:\s*:\s*|\s+)all\b", re.IGNORECASE)
_KEEP_RE = re.compile(r"^keep\s*(?::\s*|\s)(?P<numbers>[\d\s,.+-]+)$", re.IGNORECASE)
_STATUS_RE = re.compile(
    r"^(?P<action>done|remove|reopen)\s*(?::\s*|\s)(?P<numbers>[\d\s,.+-]+)$",
    re.IGNORECASE,
)
_PROJECT_RE = re.compile(
    r"^project\s+(?P<numbers>[\d\s,.+-]+?)\s*:\s*(?P<name>.*)$",
    re.IGNORECASE | re.DOTALL,
)
_SPLIT_RE = re.compile(r"[,\s]+")

STATUS_BY_ACTION = {
    "done": "done",
    "remove": "removed",
    "reopen": "open",
}

_ACTION_VERBS = {
    "done": "Marked {numbers} as done.",
    "remove": "Removed {numbers}.",
    "reopen": "Reopened {numbers}.",
}


@dataclass(frozen=True)
class KeepAll:
    mode: str = "all"


@dataclass(frozen=True)
class KeepIndices:
    """Keep the proposed tasks at these 1-based positions (ascending).

    An empty tuple is still a keep command: the user typed ``keep`` but
    none of the numbers were usable.
    """

    indices: tuple[int, ...]
    mode: str = "indices"


@dataclass(frozen=True)
class StatusChange:
    """Force the status of listed tasks. Indices keep input order."""

    action: str
    indices: tuple[int, ...]

    @property
    def status(self) -> str:
        return STATUS_BY_ACTION[self.action]

    @property
    def confirmation(self) -> str:
        return _ACTION_VERBS[self.action].format(numbers=_join_numbers(self.indices))


@dataclass(frozen=True)
class ProjectTag:
    """Set ``project_hint`` on listed tasks. Indices keep input order."""

    indices: tuple[int, ...]
    project_name: str

    @property
    def confirmation(self) -> str:
        return f"Tagged {_join_numbers(self.indices)} with project \"{self.project_name}\"."


@dataclass(frozen=True)
class NoMatch:
    pass


NO_MATCH = NoMatch()

KeepCommand = Union[KeepAll, KeepIndices, NoMatch]
TaskCommand = Union[StatusChange, ProjectTag, NoMatch]
Command = Union[KeepAll, KeepIndices, StatusChange, ProjectTag, NoMatch]


def _join_numbers(indices: tuple[int, ...]) -> str:
    return ", ".join(f"#{i}" for i in indices)


def _positive_ints(group: str) -> list[int]:
    """Split a comma/space separated group, keeping distinct integers > 0.

    Tokens that are not plain integers, or are zero or negative, are
    dropped. First-occurrence order is preserved.
    """
    seen: list[int] = []
    for token in _SPLIT_RE.split(group.strip()):
        if not token:
            continue
        try:
            value = int(token)
        except ValueError:
            continue
        if value > 0 and value not in seen:
            seen.append(value)
    return seen


def parse_keep_command(text: str | None) -> KeepCommand:
    """Parse ``keep all`` / ``keep[:] <numbers>``.

    Indices come back sorted ascending with duplicates removed.
    """
    if not text:
        return NO_MATCH
    cleaned = text.strip()

    if _KEEP_ALL_RE.match(cleaned):
        return KeepAll()

    match = _KEEP_RE.match(cleaned)
    if not match:
        return NO_MATCH

    return KeepIndices(indices=tuple(sorted(_positive_ints(match.group("numbers")))))


def parse_task_command(text: str | None) -> TaskCommand:
    """Parse ``done|remove|reopen <numbers>`` and ``project <numbers>: name``.

    Unlike keep commands, an update with no usable numbers is not a
    command at all.
    """
    if not text:
        return NO_MATCH
    cleaned = text.strip()

    match = _STATUS_RE.match(cleaned)
    if match:
        indices = _positive_ints(match.group("numbers"))
        if not indices:
            return NO_MATCH
        return StatusChange(action=match.group("action").lower(), indices=tuple(indices))

    match = _PROJECT_RE.match(cleaned)
    if match:
        indices = _positive_ints(match.group("numbers"))
        name = match.group("name").strip()
        if not indices or not name:
            return NO_MATCH
        return ProjectTag(indices=tuple(indices), project_name=name)

    return NO_MATCH


def parse_command(text: str | None) -> Command:
    """Classify one line of inbox text into any command variant."""
    keep = parse_keep_command(text)
    if keep is not NO_MATCH:
        return keep
    return parse_task_command(text)


def is_summarize_trigger(text: str | None, phrases: list[str] | tuple[str, ...]) -> bool:
    """True when the message contains one of the summarization cue phrases."""
    if not text:
        return False
    lowered = text.lower()
    return any(phrase.lower() in lowered for phrase in phrases if phrase.strip())
