"""LLM client and the two calls the bridge makes with it.

Talks to an OpenAI-compatible ``/chat/completions`` endpoint. The client
itself raises ``LLMError``; ``summarize_logs`` and
``generate_daily_briefing`` never do. They turn every failure into a
usable fallback value so the rest of the pipeline always has something
well-formed to work with.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import certifi
import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from pabridge.config import LLMPreset, LLMPresets, settings
from pabridge.core.briefing import build_fallback_briefing, normalize_briefing
from pabridge.core.canonical import (
    DEFAULT_LOCALE,
    build_fallback_event,
    decode_json_object,
    normalize_canonical_event,
)
from pabridge.core.prompt import (
    BRIEFING_SYSTEM_PROMPT,
    briefing_user_prompt,
    summarizer_system_prompt,
    summarizer_user_prompt,
)

logger = structlog.get_logger()

_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class LLMError(Exception):
    """LLM API error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _is_retryable_llm_error(exc: BaseException) -> bool:
    if isinstance(exc, LLMError) and exc.status_code in _RETRYABLE_STATUS_CODES:
        return True
    if isinstance(exc, httpx.ReadTimeout | httpx.ConnectTimeout | httpx.PoolTimeout):
        return True
    return False


# ═══════════════════════════════════════════════════════════════════════════
# RESPONSE CONTENT STRATEGIES
# ═══════════════════════════════════════════════════════════════════════════

def _chat_choices_content(data: dict[str, Any]) -> str | None:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


def _output_text(data: dict[str, Any]) -> str | None:
    text = data.get("output_text")
    return text if isinstance(text, str) else None


def _output_items_text(data: dict[str, Any]) -> str | None:
    output = data.get("output")
    if not isinstance(output, list):
        return None
    parts: list[str] = []
    for item in output:
        content = item.get("content") if isinstance(item, dict) else None
        for block in content if isinstance(content, list) else []:
            if isinstance(block, dict) and isinstance(block.get("text"), str):
                parts.append(block["text"])
    return "".join(parts) or None


CONTENT_STRATEGIES: tuple[Callable[[dict[str, Any]], str | None], ...] = (
    _chat_choices_content,
    _output_text,
    _output_items_text,
)


def extract_content(data: Any) -> str:
    """Return the first non-empty text any strategy finds, else ``""``."""
    if not isinstance(data, dict):
        return ""
    for strategy in CONTENT_STRATEGIES:
        text = strategy(data)
        if text and text.strip():
            return text.strip()
    return ""


# ═══════════════════════════════════════════════════════════════════════════
# CLIENT
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class CompletionResult:
    content: str
    usage: dict[str, int] | None = None


class LLMClient:
    """HTTP client for an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4.1-nano",
        read_timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise LLMError("LLM API key not configured")
        self.model = model
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            verify=certifi.where(),
            timeout=httpx.Timeout(connect=5.0, read=read_timeout, write=5.0, pool=15.0),
            transport=transport,
        )
        logger.info("llm_client_initialized", base_url=base_url, model=model)

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("llm_client_closed")

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        preset: LLMPreset,
    ) -> CompletionResult:
        payload = {
            "model": self.model,
            "temperature": preset.temperature,
            "max_tokens": preset.max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }

        @retry(
            retry=retry_if_exception(_is_retryable_llm_error),
            stop=stop_after_attempt(3),
            wait=wait_exponential(multiplier=1, min=1, max=4),
            reraise=True,
        )
        async def _do_request() -> CompletionResult:
            try:
                t0 = time.monotonic()
                response = await self._client.post("/chat/completions", json=payload)
                llm_ms = round((time.monotonic() - t0) * 1000)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                logger.error(
                    "chat_completion_failed",
                    status_code=status,
                    response=e.response.text[:500],
                )
                raise LLMError(f"Chat completion failed: {status}", status_code=status)
            except (httpx.ReadTimeout, httpx.ConnectTimeout, httpx.PoolTimeout) as e:
                logger.warning("chat_completion_timeout", error=str(e))
                raise
            except ValueError as e:
                raise LLMError(f"Chat completion returned invalid JSON: {e}")
            except httpx.HTTPError as e:
                logger.error("chat_completion_error", error=str(e))
                raise LLMError(f"Chat completion error: {e}")

            content = extract_content(data)
            usage = data.get("usage") if isinstance(data, dict) else None
            logger.info(
                "chat_completion_success",
                model=self.model,
                llm_ms=llm_ms,
                content_length=len(content),
                prompt_tokens=usage.get("prompt_tokens") if isinstance(usage, dict) else None,
            )
            return CompletionResult(content=content, usage=usage if isinstance(usage, dict) else None)

        try:
            return await _do_request()
        except (httpx.ReadTimeout, httpx.ConnectTimeout, httpx.PoolTimeout) as e:
            raise LLMError(f"Chat completion timed out: {e}")


_client: LLMClient | None = None


def get_llm_client() -> LLMClient | None:
    """Return the shared client, or None when no API key is configured."""
    global _client
    if _client is None and settings.openai_api_key:
        _client = LLMClient(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.llm_model,
            read_timeout=settings.llm_read_timeout,
        )
    return _client


async def close_llm_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None


# ═══════════════════════════════════════════════════════════════════════════
# SUMMARIZER & BRIEFING
# ═══════════════════════════════════════════════════════════════════════════

async def summarize_logs(
    client: LLMClient | None,
    raw_logs: str | None,
    locale: str = DEFAULT_LOCALE,
) -> dict[str, Any]:
    """Summarize pasted chat logs into a canonical event. Never raises."""
    if not raw_logs or not raw_logs.strip():
        return build_fallback_event("Nothing to summarize, no tasks created.", locale=locale)
    if client is None:
        logger.error("summarizer_not_configured")
        return build_fallback_event(
            "Summarizer not configured (missing API key), no tasks created.",
            locale=locale,
        )

    try:
        result = await client.complete(
            summarizer_system_prompt(locale),
            summarizer_user_prompt(raw_logs),
            LLMPresets.SUMMARIZER,
        )
    except LLMError as e:
        logger.error("summarizer_call_failed", error=str(e), status_code=e.status_code)
        reason = (
            f"LLM error {e.status_code}, no tasks created."
            if e.status_code
            else "Error calling the LLM, no tasks created."
        )
        return build_fallback_event(reason, locale=locale)

    if not result.content:
        logger.error("summarizer_empty_content")
        return build_fallback_event("Model returned empty content, no tasks created.", locale=locale)

    event = normalize_canonical_event(
        result.content,
        reason="Model returned non-JSON content, no tasks created.",
        locale=locale,
    )
    logger.info("summarizer_complete", task_count=len(event["tasks"]))
    return event


async def generate_daily_briefing(
    client: LLMClient | None,
    tasks: list[dict[str, Any]],
    projects: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Produce a normalized briefing; falls back to the task list on failure."""
    if client is None:
        logger.warning("briefing_llm_not_configured")
        return build_fallback_briefing(tasks)

    today = datetime.now(timezone.utc).date().isoformat()
    try:
        result = await client.complete(
            BRIEFING_SYSTEM_PROMPT,
            briefing_user_prompt(today, tasks, projects or []),
            LLMPresets.BRIEFING,
        )
    except LLMError as e:
        logger.error("briefing_call_failed", error=str(e), status_code=e.status_code)
        return build_fallback_briefing(tasks)

    payload = decode_json_object(result.content)
    if payload is None:
        logger.error("briefing_unparseable", preview=result.content[:200])
        return build_fallback_briefing(tasks)

    return normalize_briefing(payload, source_tasks=tasks)
