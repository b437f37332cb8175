"""Process-wide bridge state.

Two pieces of in-memory state connect the asynchronous chat stream to
persisted records:

- ``PendingBatch``: the latest proposed, not yet confirmed tasks. A new
  proposal replaces it wholesale (an unconfirmed batch is lost).
- ``LastListedTasks``: the latest posted actionable list, target of
  ``done 2`` style commands. Entries are patched in place on success and
  never cleared automatically.

Neither survives a restart. ``BridgeState`` owns both, each guarded by
its own lock.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from pabridge.core.briefing import task_id
from pabridge.core.commands import KeepAll, KeepCommand, KeepIndices

logger = structlog.get_logger()


@dataclass
class PendingBatch:
    tasks: list[dict[str, Any]] = field(default_factory=list)
    source_ref: str | None = None
    meta: dict[str, Any] | None = None

    @property
    def is_empty(self) -> bool:
        return not self.tasks

    def replace(
        self,
        tasks: list[dict[str, Any]],
        source_ref: str | None,
        meta: dict[str, Any] | None,
    ) -> None:
        if self.tasks:
            logger.info("pending_batch_overwritten", dropped=len(self.tasks))
        self.tasks = list(tasks)
        self.source_ref = source_ref
        self.meta = meta

    def clear(self) -> None:
        self.tasks = []
        self.source_ref = None
        self.meta = None

    def select(self, command: KeepCommand) -> list[dict[str, Any]]:
        """Tasks chosen by a keep command, in batch order.

        Out-of-range positions are skipped silently.
        """
        if isinstance(command, KeepAll):
            return list(self.tasks)
        if isinstance(command, KeepIndices):
            return [self.tasks[i - 1] for i in command.indices if 0 < i <= len(self.tasks)]
        return []

    def enrich(self, tasks: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Copies of *tasks* with the batch source_ref filled in where unset."""
        return [{**t, "source_ref": t.get("source_ref") or self.source_ref} for t in tasks]


@dataclass
class LastListedTasks:
    tasks: list[dict[str, Any]] = field(default_factory=list)
    posted_at: datetime | None = None
    message_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.tasks

    def replace(self, tasks: list[dict[str, Any]], message_id: str | None) -> None:
        self.tasks = [{**t, "id": task_id(t)} for t in tasks if task_id(t) is not None]
        self.posted_at = datetime.now(timezone.utc)
        self.message_id = message_id

    def select(self, indices: tuple[int, ...]) -> list[dict[str, Any]]:
        """Cached tasks at these 1-based positions, in the given order."""
        return [self.tasks[i - 1] for i in indices if 0 < i <= len(self.tasks)]

    def merge(self, records: list[dict[str, Any]]) -> int:
        """Overwrite cached fields with returned records, matched by id.

        Records with no cached counterpart are ignored. Returns the number
        of cached entries patched.
        """
        by_id = {task_id(t): t for t in self.tasks}
        patched = 0
        for record in records:
            record_id = task_id(record)
            cached = by_id.get(record_id) if record_id is not None else None
            if cached is None:
                continue
            cached.update(record)
            patched += 1
        return patched


@dataclass
class BridgeState:
    pending: PendingBatch = field(default_factory=PendingBatch)
    last_listed: LastListedTasks = field(default_factory=LastListedTasks)
    pending_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    listed_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
