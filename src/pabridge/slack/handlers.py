"""Slack event handlers for the bridge.

Only plain ``message`` events are handled. Bot posts, edits, deletes and
joins are ignored; everything else is handed to the task lifecycle,
which decides whether the message is a trigger, a keep command or a
task update command.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import structlog
from slack_bolt.async_app import AsyncApp, AsyncBoltContext

from pabridge.core.lifecycle import TaskLifecycle
from pabridge.core.types import InboundMessage

logger = structlog.get_logger()

EVENT_DEDUP_TTL = 60.0
IGNORED_SUBTYPES = frozenset({
    "bot_message",
    "message_changed",
    "message_deleted",
    "channel_join",
    "channel_leave",
})

_processed_events: dict[str, float] = {}
_dedup_lock: asyncio.Lock | None = None


def _get_dedup_lock() -> asyncio.Lock:
    """Lazily create the dedup lock inside the running event loop."""
    global _dedup_lock
    if _dedup_lock is None:
        _dedup_lock = asyncio.Lock()
    return _dedup_lock


async def is_duplicate_event(key: str) -> bool:
    """Record *key*; True if it was already seen within the TTL."""
    global _processed_events

    async with _get_dedup_lock():
        now = time.monotonic()
        _processed_events = {
            k: v for k, v in _processed_events.items()
            if now - v < EVENT_DEDUP_TTL
        }
        if key in _processed_events:
            logger.debug("event_dedup_skip", key=key)
            return True
        _processed_events[key] = now
        return False


def should_ignore(event: dict[str, Any], bot_user_id: str | None = None) -> bool:
    if event.get("subtype") in IGNORED_SUBTYPES or event.get("bot_id"):
        return True
    if bot_user_id and event.get("user") == bot_user_id:
        return True
    return not (event.get("text") or "").strip()


def register_handlers(app: AsyncApp, lifecycle: TaskLifecycle) -> None:
    """Register the message handler with the Bolt app."""

    @app.event("message")
    async def handle_message(event: dict[str, Any], context: AsyncBoltContext) -> None:
        if should_ignore(event, context.get("bot_user_id")):
            return
        if await is_duplicate_event(f"{event.get('channel')}:{event.get('ts')}"):
            return

        message = InboundMessage.from_slack_event(event)
        logger.info(
            "slack_message_received",
            channel=message.channel_id,
            user=message.user_id,
            text=message.text[:120],
        )
        await lifecycle.handle_message(message)
