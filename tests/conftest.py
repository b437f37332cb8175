"""Pytest configuration and shared fixtures.

Run with:
    pytest tests/                          # Run all tests
    pytest tests/unit/test_commands.py -v  # Run specific test file

Nothing here talks to Slack, the LLM or a real state API: the chat
gateway and the state client are mocks, outbound HTTP goes through
``httpx.MockTransport``.
"""

from __future__ import annotations

import itertools
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pabridge.core.lifecycle import LifecycleConfig, TaskLifecycle
from pabridge.core.state import BridgeState
from pabridge.integrations.state_client import StateClient

INPUT = "C_INPUT"
INBOX = "C_INBOX"
BROADCAST = "C_BROADCAST"
LOG = "C_LOG"
OWNER = "U_OWNER"


@pytest.fixture
def chat() -> MagicMock:
    """Mock chat gateway; every post returns a fresh ts."""
    counter = itertools.count(1)
    gateway = MagicMock()
    gateway.post_message = AsyncMock(side_effect=lambda channel, text: f"1700000200.{next(counter):06d}")
    gateway.recent_messages = AsyncMock(return_value=[])
    return gateway


@pytest.fixture
def state_client() -> MagicMock:
    client = MagicMock(spec=StateClient)
    client.create_tasks = AsyncMock(side_effect=lambda tasks: [
        {**t, "id": f"t_{i}"} for i, t in enumerate(tasks, start=1)
    ])
    client.update_tasks = AsyncMock(side_effect=lambda tasks: [dict(t) for t in tasks])
    client.list_tasks = AsyncMock(return_value=[])
    client.list_projects = AsyncMock(return_value=[])
    return client


@pytest.fixture
def lifecycle_config() -> LifecycleConfig:
    return LifecycleConfig(
        input_channel_id=INPUT,
        inbox_channel_id=INBOX,
        authorized_user_id=OWNER,
        broadcast_channel_id=BROADCAST,
        log_channel_id=LOG,
    )


@pytest.fixture
def lifecycle(chat: MagicMock, state_client: MagicMock, lifecycle_config: LifecycleConfig) -> TaskLifecycle:
    return TaskLifecycle(
        chat=chat,
        state_client=state_client,
        config=lifecycle_config,
        llm=None,
        state=BridgeState(),
    )


@pytest.fixture
def proposed_tasks() -> list[dict[str, Any]]:
    return [
        {"id": None, "title": "Send linesheet", "context": "", "due": None,
         "priority_hint": "high", "project_hint": None, "source_ref": None},
        {"id": None, "title": "Book venue", "context": "for launch", "due": "2025-11-14",
         "priority_hint": None, "project_hint": "Launch", "source_ref": "slack:#ops@2025-11-10"},
        {"id": None, "title": "Reply to supplier", "context": "", "due": None,
         "priority_hint": "low", "project_hint": None, "source_ref": None},
    ]


@pytest.fixture
def listed_tasks() -> list[dict[str, Any]]:
    return [
        {"id": "11", "title": "Send linesheet", "status": "open", "project_hint": None, "score": 0.9},
        {"id": "12", "title": "Book venue", "status": "open", "project_hint": "Launch", "score": 0.7},
        {"id": "13", "title": "Reply to supplier", "status": "blocked", "project_hint": None, "score": 0.4},
    ]
