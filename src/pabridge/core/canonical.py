"""Canonical event normalization.

The summarizer model is asked for one JSON object in the canonical
event schema, but its output is unreliable: empty, wrapped in prose or
code fences, or missing whole sections. ``normalize_canonical_event``
is the boundary that turns whatever came back into a fully-shaped
event. It never raises.

Canonical event shape::

    {
      "event_type": "slack_mass_input_summary",
      "source": {"platform", "server", "channel", "time_window"},
      "content": "summary text",
      "tasks": [{"id": None, "title", "context", "due", "priority_hint",
                 "project_hint", "source_ref"}],
      "meta": {"now", "locale", "importance"},
    }
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

import structlog

logger = structlog.get_logger()

EVENT_TYPE = "slack_mass_input_summary"
DEFAULT_LOCALE = "en-DK"
DEFAULT_SUMMARY = "No summary available."
UNTITLED_TASK = "Untitled task"

SOURCE_KEYS = ("platform", "server", "channel", "time_window")
PRIORITIES = frozenset({"high", "medium", "low"})
IMPORTANCE_LEVELS = frozenset({"high", "normal", "low"})

_FENCED_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ═══════════════════════════════════════════════════════════════════════════
# JSON EXTRACTION STRATEGIES
# ═══════════════════════════════════════════════════════════════════════════

def _decode_whole(text: str) -> Any:
    return json.loads(text)


def _decode_fenced_block(text: str) -> Any:
    match = _FENCED_RE.search(text)
    if not match:
        return None
    return json.loads(match.group(1))


def _decode_outer_braces(text: str) -> Any:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return json.loads(text[start:end + 1])


JSON_STRATEGIES: tuple[Callable[[str], Any], ...] = (
    _decode_whole,
    _decode_fenced_block,
    _decode_outer_braces,
)


def decode_json_object(text: str | None) -> dict[str, Any] | None:
    """Try each decoding strategy in order; return the first JSON object.

    Strategies that fail or decode to something other than an object are
    skipped. Returns None when nothing yields an object.
    """
    if not text or not text.strip():
        return None
    stripped = text.strip()
    for strategy in JSON_STRATEGIES:
        try:
            value = strategy(stripped)
        except (ValueError, TypeError):
            continue
        if isinstance(value, dict):
            return value
    return None


# ═══════════════════════════════════════════════════════════════════════════
# FIELD COERCION
# ═══════════════════════════════════════════════════════════════════════════

def _str_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def coerce_due(value: Any) -> str | None:
    """Reduce a date-ish value to ``YYYY-MM-DD``; anything else is None."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or len(value.strip()) < 10:
        return None
    head = value.strip()[:10]
    try:
        return date.fromisoformat(head).isoformat()
    except ValueError:
        return None


def _is_timestamp(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def normalize_proposed_task(raw: dict[str, Any]) -> dict[str, Any]:
    """Shape one model-proposed task. Proposed tasks never carry an id."""
    priority = raw.get("priority_hint")
    task = dict(raw)
    task.update(
        id=None,
        title=_str_or_none(raw.get("title")) or UNTITLED_TASK,
        context=raw.get("context") if isinstance(raw.get("context"), str) else "",
        due=coerce_due(raw.get("due")),
        priority_hint=priority.lower() if isinstance(priority, str) and priority.lower() in PRIORITIES else None,
        project_hint=_str_or_none(raw.get("project_hint")),
        source_ref=_str_or_none(raw.get("source_ref")),
    )
    return task


# ═══════════════════════════════════════════════════════════════════════════
# EVENT BUILDERS
# ═══════════════════════════════════════════════════════════════════════════

def empty_source() -> dict[str, Any]:
    return {key: None for key in SOURCE_KEYS}


def default_meta(importance: str = "normal", locale: str = DEFAULT_LOCALE) -> dict[str, Any]:
    return {"now": utc_now_iso(), "locale": locale, "importance": importance}


def build_fallback_event(reason: str | None, locale: str = DEFAULT_LOCALE) -> dict[str, Any]:
    """A safe, task-free event whose content explains what went wrong."""
    return {
        "event_type": EVENT_TYPE,
        "source": empty_source(),
        "content": reason or DEFAULT_SUMMARY,
        "tasks": [],
        "meta": default_meta(importance="low", locale=locale),
    }


def _normalize_source(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        return empty_source()
    source = dict(value)
    for key in SOURCE_KEYS:
        source.setdefault(key, None)
    return source


def _normalize_meta(value: Any, locale: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        return default_meta(locale=locale)
    meta = dict(value)
    if not _is_timestamp(meta.get("now")):
        meta["now"] = utc_now_iso()
    if not isinstance(meta.get("locale"), str) or not meta["locale"]:
        meta["locale"] = locale
    if meta.get("importance") not in IMPORTANCE_LEVELS:
        meta["importance"] = "normal"
    return meta


def normalize_canonical_event(
    payload: str | dict[str, Any] | None,
    reason: str | None = None,
    locale: str = DEFAULT_LOCALE,
) -> dict[str, Any]:
    """Turn raw model output (text or decoded mapping) into a canonical event.

    Unparseable or non-object input produces the fallback event carrying
    *reason*. A parsed object has each section backfilled independently,
    so whatever the model did return is preserved.
    """
    try:
        data = payload if isinstance(payload, dict) else decode_json_object(payload)
        if data is None:
            logger.warning(
                "canonical_event_unparseable",
                reason=reason,
                preview=(payload or "")[:200] if isinstance(payload, str) else None,
            )
            return build_fallback_event(reason, locale=locale)

        event = dict(data)
        if not _str_or_none(event.get("event_type")):
            event["event_type"] = EVENT_TYPE
        event["source"] = _normalize_source(event.get("source"))
        if not isinstance(event.get("content"), str) or not event["content"].strip():
            event["content"] = DEFAULT_SUMMARY
        tasks = event.get("tasks")
        event["tasks"] = (
            [normalize_proposed_task(t) for t in tasks if isinstance(t, dict)]
            if isinstance(tasks, list)
            else []
        )
        event["meta"] = _normalize_meta(event.get("meta"), locale)
        return event
    except Exception as e:
        logger.error("canonical_event_normalize_failed", error=str(e))
        return build_fallback_event(reason, locale=locale)
