"""Bridge entry point: Slack Bolt (Socket Mode) + FastAPI.

Architecture:
- FastAPI for health checks and the daily briefing trigger
- Slack Bolt over Socket Mode for chat events, started in the lifespan
- Optional APScheduler job for an in-process daily briefing

Missing chat settings disable the Slack side only; the HTTP endpoints
always come up.
"""

from __future__ import annotations

import ssl
from contextlib import asynccontextmanager
from dataclasses import dataclass

import certifi
import structlog
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp
from slack_sdk.web.async_client import AsyncWebClient

from pabridge.config import Settings, settings
from pabridge.core.lifecycle import LifecycleConfig, TaskLifecycle
from pabridge.core.llm import close_llm_client, get_llm_client
from pabridge.crons.scheduler import BriefingScheduler
from pabridge.integrations.state_client import get_state_client
from pabridge.observability.logging import configure_logging
from pabridge.slack.chat import SlackChat
from pabridge.slack.handlers import register_handlers

logger = structlog.get_logger()


@dataclass
class Runtime:
    """Everything the bridge process runs, built once from settings."""

    lifecycle: TaskLifecycle | None = None
    bolt: AsyncApp | None = None
    app_token: str = ""
    scheduler: BriefingScheduler | None = None


def build_runtime(s: Settings = settings) -> Runtime:
    s.log_startup_problems()
    if not s.slack_bot_token:
        return Runtime()

    ssl_ctx = ssl.create_default_context(cafile=certifi.where())
    web_client = AsyncWebClient(token=s.slack_bot_token, ssl=ssl_ctx)
    lifecycle = TaskLifecycle(
        chat=SlackChat(web_client),
        state_client=get_state_client(),
        config=LifecycleConfig.from_settings(s),
        llm=get_llm_client(),
    )
    runtime = Runtime(lifecycle=lifecycle)

    if not s.chat_flow_problems():
        bolt = AsyncApp(
            token=s.slack_bot_token,
            signing_secret=s.slack_signing_secret,
            client=web_client,
        )
        register_handlers(bolt, lifecycle)
        runtime.bolt = bolt
        runtime.app_token = s.slack_app_token

    if s.briefing_cron:
        runtime.scheduler = BriefingScheduler(lifecycle, s.briefing_cron, timezone=s.timezone)

    return runtime


def create_api(runtime: Runtime) -> FastAPI:
    """FastAPI app exposing the operational endpoints for *runtime*."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("app_starting", env=settings.env, chat_enabled=runtime.bolt is not None)

        socket_handler: AsyncSocketModeHandler | None = None
        if runtime.bolt is not None:
            try:
                socket_handler = AsyncSocketModeHandler(runtime.bolt, runtime.app_token)
                await socket_handler.connect_async()
                logger.info("slack_socket_mode_connected")
            except Exception as e:
                logger.error("slack_socket_mode_failed", error=str(e))
                socket_handler = None

        if runtime.scheduler is not None:
            runtime.scheduler.start()

        yield

        logger.info("app_shutting_down")
        if runtime.scheduler is not None:
            runtime.scheduler.stop()
        if socket_handler is not None:
            await socket_handler.close_async()
        await close_llm_client()

    api = FastAPI(
        title="pabridge",
        version="0.1.0",
        description="Slack to LLM task bridge",
        lifespan=lifespan,
    )

    @api.get("/", response_class=PlainTextResponse)
    @api.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        """Liveness check."""
        return "OK"

    @api.get("/cron/daily-briefing", response_class=PlainTextResponse)
    async def daily_briefing() -> PlainTextResponse:
        """Run the daily briefing now (called by an external scheduler)."""
        if runtime.lifecycle is None:
            logger.error("daily_briefing_not_configured")
            return PlainTextResponse("Daily briefing not configured", status_code=500)

        ok = await runtime.lifecycle.trigger_daily_briefing()
        if ok:
            return PlainTextResponse("Daily briefing posted")
        return PlainTextResponse("Daily briefing failed", status_code=500)

    return api


def main() -> None:
    """Run the bridge: HTTP endpoints plus Slack Socket Mode."""
    import uvicorn

    configure_logging(settings.log_level, settings.env)
    api = create_api(build_runtime(settings))
    logger.info("starting_pabridge", port=settings.port)
    uvicorn.run(api, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
