"""Task lifecycle: trigger → summary → proposal → confirmation → persistence.

One ``TaskLifecycle`` per process. It owns the ``BridgeState``. Writes to
the pending batch happen under ``pending_lock`` and writes to the last
listed tasks under ``listed_lock``. Log extraction and LLM calls run
outside both locks. Of two overlapping triggers, the one that finishes
last replaces the pending batch.

Entry points (``handle_message``, ``trigger_daily_briefing``) catch
everything: failures are logged, reported to the log channel and
answered with a short chat reply or a False result. Nothing escapes
into Slack's event dispatch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from pabridge.config import Settings
from pabridge.core.canonical import DEFAULT_LOCALE
from pabridge.core.commands import (
    NO_MATCH,
    KeepCommand,
    ProjectTag,
    StatusChange,
    TaskCommand,
    is_summarize_trigger,
    parse_keep_command,
    parse_task_command,
)
from pabridge.core.llm import LLMClient, generate_daily_briefing, summarize_logs
from pabridge.core.state import BridgeState
from pabridge.core.types import ChatGateway, InboundMessage
from pabridge.integrations.state_client import StateAPIError, StateClient
from pabridge.slack import formatting
from pabridge.slack.reader import extract_last_log_block

logger = structlog.get_logger()


@dataclass(frozen=True)
class LifecycleConfig:
    input_channel_id: str
    inbox_channel_id: str
    authorized_user_id: str
    broadcast_channel_id: str = ""
    log_channel_id: str = ""
    trigger_phrases: tuple[str, ...] = ("summarize", "summarise", "sum up")
    history_lookback: int = 20
    locale: str = DEFAULT_LOCALE

    @classmethod
    def from_settings(cls, s: Settings) -> LifecycleConfig:
        return cls(
            input_channel_id=s.input_channel_id,
            inbox_channel_id=s.inbox_channel_id,
            authorized_user_id=s.authorized_user_id,
            broadcast_channel_id=s.broadcast_channel_id,
            log_channel_id=s.log_channel_id,
            trigger_phrases=tuple(s.trigger_phrases),
            history_lookback=s.history_lookback,
            locale=s.locale,
        )


def derive_source_ref(
    event: dict[str, Any],
    fallback_channel: str,
    now: datetime | None = None,
) -> str:
    """Provenance tag for a batch.

    Prefers an explicit ``source_ref`` on the event, then the summarized
    channel and time window, then a generic channel + timestamp tag.
    """
    explicit = event.get("source_ref")
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip()

    source = event.get("source") if isinstance(event.get("source"), dict) else {}
    channel = source.get("channel")
    window = source.get("time_window")
    if channel:
        return f"slack:{channel}@{window}" if window else f"slack:{channel}"

    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"slack:{fallback_channel}@{stamp}"


def build_task_update(task: dict[str, Any], command: StatusChange | ProjectTag) -> dict[str, Any]:
    """Full record for one cached task with the command's change applied."""
    if isinstance(command, StatusChange):
        return {**task, "status": command.status}
    return {**task, "project_hint": command.project_name}


@dataclass
class TaskLifecycle:
    chat: ChatGateway
    state_client: StateClient
    config: LifecycleConfig
    llm: LLMClient | None = None
    state: BridgeState = field(default_factory=BridgeState)

    # ═══ DISPATCH ═══════════════════════════════════════════════════════

    async def handle_message(self, message: InboundMessage) -> None:
        """Route one inbound chat message. Never raises."""
        try:
            if message.user_id != self.config.authorized_user_id:
                return

            if message.channel_id == self.config.input_channel_id and self.is_trigger(message.text):
                await self.handle_trigger(message)
                return

            if message.channel_id == self.config.inbox_channel_id:
                await self.handle_inbox_message(message)
        except Exception as e:
            logger.exception("message_handling_failed", channel=message.channel_id, ts=message.ts)
            await self._report_failure("handle_message", e)
            await self._safe_post(message.channel_id, formatting.GENERIC_APOLOGY)

    def is_trigger(self, text: str) -> bool:
        return is_summarize_trigger(text, self.config.trigger_phrases)

    # ═══ TRIGGER → SUMMARY → PROPOSAL ═══════════════════════════════════

    async def handle_trigger(self, trigger: InboundMessage) -> None:
        raw_logs = await extract_last_log_block(
            self.chat,
            trigger,
            sender_id=self.config.authorized_user_id,
            is_trigger=self.is_trigger,
            limit=self.config.history_lookback,
        )
        if raw_logs is None:
            await self.chat.post_message(trigger.channel_id, formatting.NOTHING_FOUND)
            return

        logger.info("summarize_triggered", channel=trigger.channel_id, log_chars=len(raw_logs))
        event = await summarize_logs(self.llm, raw_logs, locale=self.config.locale)
        await self.propose(event, trigger.channel_id)

    async def propose(self, event: dict[str, Any], summary_channel: str) -> None:
        """Post the summary and either a proposal or a no-tasks notice.

        Runs under the pending lock.
        """
        async with self.state.pending_lock:
            await self.chat.post_message(summary_channel, formatting.render_summary(event["content"]))

            tasks = event["tasks"]
            if not tasks:
                self.state.pending.clear()
                await self.chat.post_message(self.config.inbox_channel_id, formatting.NO_ACTIONABLE_TASKS)
                logger.info("proposal_empty")
                return

            await self.chat.post_message(self.config.inbox_channel_id, formatting.render_proposal(tasks))
            source_ref = derive_source_ref(event, self.config.input_channel_id)
            self.state.pending.replace(tasks, source_ref=source_ref, meta=event.get("meta"))
            logger.info("pending_batch_saved", count=len(tasks), source_ref=source_ref)

    # ═══ INBOX COMMANDS ═════════════════════════════════════════════════

    async def handle_inbox_message(self, message: InboundMessage) -> None:
        keep = parse_keep_command(message.text)
        if keep is not NO_MATCH:
            await self.confirm_pending(keep, message.channel_id)
            return

        command = parse_task_command(message.text)
        if command is NO_MATCH:
            return
        await self.apply_task_command(command, message.channel_id)

    async def confirm_pending(self, command: KeepCommand, reply_channel: str) -> None:
        """Resolve a keep command against the pending batch.

        The batch is cleared only after a successful save, so a failed
        save can be retried with the same command.
        """
        async with self.state.pending_lock:
            pending = self.state.pending
            if pending.is_empty:
                await self.chat.post_message(reply_channel, formatting.NO_PENDING_BATCH)
                return

            selected = pending.select(command)
            if not selected:
                await self.chat.post_message(reply_channel, formatting.NO_VALID_NUMBERS)
                return

            try:
                created = await self.state_client.create_tasks(pending.enrich(selected))
            except Exception as e:
                logger.error("pending_batch_save_failed", error=str(e), selected=len(selected))
                await self._report_failure("create_tasks", e)
                await self.chat.post_message(reply_channel, formatting.SAVE_FAILED)
                return

            pending.clear()
            logger.info("pending_batch_confirmed", selected=len(selected), created=len(created))
            await self.chat.post_message(reply_channel, formatting.render_saved(len(created)))

    async def apply_task_command(self, command: TaskCommand, reply_channel: str) -> None:
        """Apply a status/project command to the last listed tasks."""
        if not isinstance(command, (StatusChange, ProjectTag)):
            return

        async with self.state.listed_lock:
            listed = self.state.last_listed
            if listed.is_empty:
                await self.chat.post_message(reply_channel, formatting.NO_CACHED_LIST)
                return

            selected = listed.select(command.indices)
            if not selected:
                await self.chat.post_message(reply_channel, formatting.NO_MATCHING_NUMBERS)
                return

            updates = [build_task_update(task, command) for task in selected]
            try:
                saved = await self.state_client.update_tasks(updates)
            except Exception as e:
                logger.error("task_update_failed", error=str(e), count=len(updates))
                await self._report_failure("update_tasks", e)
                await self.chat.post_message(reply_channel, formatting.UPDATE_FAILED)
                return

            patched = listed.merge(saved)
            logger.info("task_update_applied", requested=len(updates), patched=patched)
            await self.chat.post_message(reply_channel, command.confirmation)

    # ═══ DAILY BRIEFING ═════════════════════════════════════════════════

    async def run_daily_briefing(self) -> None:
        """Fetch tasks, generate and post the briefing, cache the list.

        Raises on fetch or posting failure; generation failures are
        already turned into a fallback briefing.
        """
        if not self.config.broadcast_channel_id:
            raise RuntimeError("Broadcast channel not configured")

        tasks = await self.state_client.list_tasks()
        try:
            projects = await self.state_client.list_projects()
        except StateAPIError as e:
            logger.warning("briefing_projects_unavailable", error=str(e))
            projects = []

        briefing = await generate_daily_briefing(self.llm, tasks, projects)
        actionable = briefing["actionable_list"]

        async with self.state.listed_lock:
            await self.chat.post_message(self.config.broadcast_channel_id, briefing["daily_message"])
            message_id = await self.chat.post_message(self.config.inbox_channel_id, actionable["message"])

            self.state.last_listed.replace(actionable["tasks"], message_id=message_id)
            logger.info(
                "daily_briefing_posted",
                task_count=len(tasks),
                listed=len(actionable["tasks"]),
                message_id=message_id,
            )

    async def trigger_daily_briefing(self) -> bool:
        """Run the briefing; True on success. Never raises."""
        try:
            await self.run_daily_briefing()
            return True
        except Exception as e:
            logger.exception("daily_briefing_failed")
            await self._report_failure("daily_briefing", e)
            return False

    # ═══ HELPERS ════════════════════════════════════════════════════════

    async def _safe_post(self, channel_id: str, text: str) -> None:
        try:
            await self.chat.post_message(channel_id, text)
        except Exception as e:
            logger.warning("slack_post_failed", channel=channel_id, error=str(e))

    async def _report_failure(self, where: str, error: BaseException) -> None:
        """Best-effort diagnostic in the operational log channel."""
        if not self.config.log_channel_id:
            return
        await self._safe_post(self.config.log_channel_id, formatting.render_ops_error(where, error))
