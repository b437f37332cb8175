"""Centralized configuration via Pydantic Settings.

All values loaded from environment variables prefixed with PABRIDGE_
(or a local .env file). Missing chat settings never stop the process:
they disable the chat-driven flow while the HTTP endpoints stay up.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PABRIDGE_", env_file=".env", extra="ignore")

    # Slack
    slack_bot_token: str = ""
    slack_app_token: str = ""
    slack_signing_secret: str = ""

    # Channels and the one person allowed to drive the bridge
    input_channel_id: str = ""
    inbox_channel_id: str = ""
    broadcast_channel_id: str = ""
    log_channel_id: str = ""
    authorized_user_id: str = ""

    # LLM (OpenAI-compatible chat completions)
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4.1-nano"
    llm_read_timeout: float = 120.0

    # Remote state API (the CRUD façade)
    state_api_base_url: str = ""
    state_api_timeout: float = 30.0

    # HTTP listeners
    port: int = 8080
    state_api_port: int = 9000
    state_database_url: str = ""

    # ── Behaviour ─────────────────────────────────────────────
    trigger_phrases: list[str] = ["summarize", "summarise", "sum up"]
    history_lookback: int = 20
    locale: str = "en-DK"
    briefing_cron: str = ""
    timezone: str = "Europe/Copenhagen"

    # Application
    log_level: str = "INFO"
    env: str = "development"

    def chat_flow_problems(self) -> list[str]:
        """Names of settings the chat-driven flow needs but does not have."""
        required = {
            "slack_bot_token": self.slack_bot_token,
            "slack_app_token": self.slack_app_token,
            "input_channel_id": self.input_channel_id,
            "inbox_channel_id": self.inbox_channel_id,
            "authorized_user_id": self.authorized_user_id,
        }
        return [name for name, value in required.items() if not value]

    def briefing_problems(self) -> list[str]:
        """Names of settings the daily briefing needs but does not have."""
        required = {
            "slack_bot_token": self.slack_bot_token,
            "inbox_channel_id": self.inbox_channel_id,
            "broadcast_channel_id": self.broadcast_channel_id,
            "state_api_base_url": self.state_api_base_url,
        }
        return [name for name, value in required.items() if not value]

    def log_startup_problems(self) -> None:
        """Warn once about every disabled flow and soft-missing credential."""
        chat = self.chat_flow_problems()
        if chat:
            logger.warning("chat_flow_disabled", missing=chat)
        briefing = self.briefing_problems()
        if briefing:
            logger.warning("daily_briefing_disabled", missing=briefing)
        if not self.openai_api_key:
            logger.warning("llm_not_configured", missing=["openai_api_key"])
        if not self.state_api_base_url:
            logger.warning("state_api_not_configured", missing=["state_api_base_url"])


settings = Settings()  # type: ignore[call-arg]


@dataclass(frozen=True)
class LLMPreset:
    """Named parameter preset for internal LLM calls."""

    temperature: float
    max_tokens: int


class LLMPresets:
    """Central registry of LLM parameter presets.

    Keeps temperature/max_tokens pairs out of individual files so they
    can be tuned in one place.
    """

    SUMMARIZER = LLMPreset(temperature=0.1, max_tokens=1200)
    BRIEFING = LLMPreset(temperature=0.3, max_tokens=1500)
