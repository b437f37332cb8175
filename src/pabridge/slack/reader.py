"""Find the log block a trigger message refers to.

Heuristic: among the last few messages in the channel, take the most
recent one from the authorized sender that predates the trigger, has
text, and is not itself a trigger. Logs are expected to be pasted as a
single message.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal, InvalidOperation

import structlog

from pabridge.core.types import ChatGateway, InboundMessage

logger = structlog.get_logger()

DEFAULT_LOOKBACK = 20


def _ts_value(ts: str | None) -> Decimal | None:
    try:
        return Decimal(ts) if ts else None
    except InvalidOperation:
        return None


async def extract_last_log_block(
    chat: ChatGateway,
    trigger: InboundMessage,
    sender_id: str,
    is_trigger: Callable[[str], bool],
    limit: int = DEFAULT_LOOKBACK,
) -> str | None:
    """Return the text of the log message preceding *trigger*, or None."""
    trigger_ts = _ts_value(trigger.ts)
    messages = await chat.recent_messages(trigger.channel_id, latest=trigger.ts, limit=limit)

    candidates = []
    for msg in messages:
        ts = _ts_value(msg.get("ts"))
        text = msg.get("text") or ""
        if ts is None or msg.get("ts") == trigger.ts:
            continue
        if trigger_ts is not None and ts >= trigger_ts:
            continue
        if msg.get("user") != sender_id or msg.get("subtype"):
            continue
        if not text.strip() or is_trigger(text):
            continue
        candidates.append((ts, text))

    if not candidates:
        logger.info("log_block_not_found", channel=trigger.channel_id, scanned=len(messages))
        return None

    _, text = max(candidates, key=lambda c: c[0])
    logger.info("log_block_found", channel=trigger.channel_id, length=len(text))
    return text
