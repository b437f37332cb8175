"""Shared types for the bridge core.

Kept in a separate file so the Slack adapter and the lifecycle can both
import them without importing each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class InboundMessage:
    """A chat message as the lifecycle sees it."""

    channel_id: str
    user_id: str
    text: str
    ts: str

    @classmethod
    def from_slack_event(cls, event: dict[str, Any]) -> InboundMessage:
        return cls(
            channel_id=event.get("channel") or "",
            user_id=event.get("user") or "",
            text=event.get("text") or "",
            ts=event.get("ts") or "",
        )


class ChatGateway(Protocol):
    """What the lifecycle needs from the chat platform."""

    async def post_message(self, channel_id: str, text: str) -> str | None: ...

    async def recent_messages(
        self,
        channel_id: str,
        latest: str | None = None,
        limit: int = 20,
    ) -> list[dict[str, Any]]: ...
