"""Slack Web API wrapper used by the lifecycle to read and post."""

from __future__ import annotations

from typing import Any

import structlog
from slack_sdk.web.async_client import AsyncWebClient

logger = structlog.get_logger()


class SlackChat:
    """ChatGateway backed by the Slack Web API."""

    def __init__(self, client: AsyncWebClient) -> None:
        self._client = client

    async def post_message(self, channel_id: str, text: str) -> str | None:
        """Post plain mrkdwn text; returns the new message ts."""
        result = await self._client.chat_postMessage(
            channel=channel_id,
            text=text,
            unfurl_links=False,
            unfurl_media=False,
        )
        ts = result.get("ts")
        logger.debug("slack_message_posted", channel=channel_id, ts=ts)
        return ts

    async def recent_messages(
        self,
        channel_id: str,
        latest: str | None = None,
        limit: int = 20,
    ) -> list[dict[str, Any]]:
        """Up to *limit* messages before *latest*, newest first."""
        kwargs: dict[str, Any] = {"channel": channel_id, "limit": limit}
        if latest:
            kwargs["latest"] = latest
            kwargs["inclusive"] = False
        result = await self._client.conversations_history(**kwargs)
        return list(result.get("messages", []))
