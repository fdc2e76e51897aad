"""Configuration management for Whisperer."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings, created once at startup and passed down explicitly."""

    model_config = SettingsConfigDict(
        env_prefix="WHISPERER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Slack Configuration
    slack_bot_token: str | None = Field(None, description="Bot token used for posting and reading threads")

    # Model Configuration
    llm_provider: Literal["openai", "azure"] = Field("openai", description="Model backend flavour")
    api_key: str | None = Field(None, description="API key for the model provider")
    api_base: str | None = Field(None, description="Base URL, or the Azure endpoint when llm_provider=azure")
    model: str = Field("gpt-4o", description="Model name, or the Azure deployment name")
    azure_api_version: str = Field("2024-10-21", description="Azure OpenAI API version")
    max_tokens: int | None = Field(None, description="Maximum tokens for one completion")
    model_timeout_seconds: float = Field(120.0, description="Timeout for a single model request")

    # Tool Backend Configuration
    mcp_command: str = Field("uvx", description="Executable that launches the MCP tool server")
    mcp_args: list[str] = Field(default_factory=lambda: ["mcp-atlassian"], description="MCP server arguments")
    mcp_env: dict[str, str] = Field(default_factory=dict, description="Extra environment for the MCP server")
    jira_url: str | None = Field(None, description="Jira base URL handed to the MCP server")
    token_flag: str = Field("--jira-personal-token", description="Flag used to pass a token to the MCP server")
    default_jira_token: str | None = Field(None, description="Read-only token for the shared tool client")

    # Credential Store Configuration
    token_store_path: Path = Field(Path(".whisperer"), description="Directory holding encrypted personal tokens")
    token_encryption_key: str | None = Field(None, description="Fernet key; generated on disk when unset")

    # Conversation Configuration
    system_prompt: str | None = Field(None, description="Override for the assistant system prompt")
    max_rounds: int = Field(20, description="Maximum model/tool rounds per turn")
    context_window: int = Field(20, description="Most recent messages kept next to the system prompt")
    summarize_threshold: int = Field(2000, description="Tool results longer than this are summarized")
    progress_message_limit: int = Field(40_000, description="Size ceiling of one progress message")
    turn_timeout_seconds: float = Field(300.0, description="Deadline for one whole turn")
    tool_timeout_seconds: float = Field(120.0, description="Deadline for one tool call")
    handshake_timeout_seconds: float = Field(300.0, description="Deadline for the MCP initialize handshake")
    support_contact: str = Field("your Jira admin", description="Who to contact, shown in error notices")

    # Logging Configuration
    log_level: str = Field("INFO", description="Log level")
    log_profile: Literal["default", "console"] = Field("default", description="Log output profile")

    # HTTP Configuration
    host: str = Field("0.0.0.0", description="Bind address for the events endpoint")  # noqa: S104
    port: int = Field(3000, description="Port for the events endpoint")

    @field_validator("context_window")
    @classmethod
    def _check_context_window(cls, value: int) -> int:
        # Tool calls and their results are stored as pairs; an odd window can orphan a result.
        if value < 2 or value % 2:
            raise ValueError("context_window must be an even number of at least 2")
        return value

    def require_slack_token(self) -> str:
        if not self.slack_bot_token:
            raise ConfigurationError("WHISPERER_SLACK_BOT_TOKEN is not configured")
        return self.slack_bot_token

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("WHISPERER_API_KEY is not configured")
        return self.api_key


def load_settings(**overrides: Any) -> Settings:
    """Load settings from the environment and ``.env``, applying explicit overrides."""
    try:
        settings = Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"invalid settings: {exc}") from exc
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    if settings.llm_provider == "azure" and not settings.api_base:
        raise ConfigurationError("WHISPERER_API_BASE must point at the Azure endpoint when llm_provider=azure")
    return settings
