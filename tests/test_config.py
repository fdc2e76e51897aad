from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from whisperer.config import Settings, load_settings
from whisperer.core.orchestrator import OrchestratorOptions
from whisperer.errors import ConfigurationError


def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.max_rounds == 20
    assert settings.context_window == 20
    assert settings.summarize_threshold == 2000
    assert settings.progress_message_limit == 40_000
    assert settings.turn_timeout_seconds == 300.0
    assert settings.mcp_args == ["mcp-atlassian"]


def test_settings_read_prefixed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WHISPERER_MAX_ROUNDS", "5")
    monkeypatch.setenv("WHISPERER_MCP_ARGS", '["mcp-atlassian", "--read-only"]')
    monkeypatch.setenv("WHISPERER_SLACK_BOT_TOKEN", "xoxb-env")

    settings = load_settings()

    assert settings.max_rounds == 5
    assert settings.mcp_args == ["mcp-atlassian", "--read-only"]
    assert settings.require_slack_token() == "xoxb-env"


def test_settings_read_dotenv(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("WHISPERER_MODEL=gpt-4.1\n", encoding="utf-8")

    assert Settings().model == "gpt-4.1"


def test_load_settings_applies_overrides() -> None:
    settings = load_settings(log_level="DEBUG", port=None)

    assert settings.log_level == "DEBUG"
    assert settings.port == 3000


def test_missing_required_values_raise() -> None:
    settings = Settings()

    with pytest.raises(ConfigurationError):
        settings.require_slack_token()
    with pytest.raises(ConfigurationError):
        settings.require_api_key()
    with pytest.raises(ConfigurationError, match="Azure"):
        load_settings(llm_provider="azure")


def test_orchestrator_options_from_settings() -> None:
    settings = Settings(jira_url="https://jira.example.com/", max_rounds=7, support_contact="#help")

    options = OrchestratorOptions.from_settings(settings)

    assert options.max_rounds == 7
    assert options.support_contact == "#help"
    assert "https://jira.example.com/browse/" in options.system_prompt

    override = OrchestratorOptions.from_settings(Settings(system_prompt="  Be brief.  "))
    assert override.system_prompt == "Be brief."


@pytest.mark.parametrize("window", ["0", "1", "7"])
def test_context_window_must_keep_whole_tool_pairs(monkeypatch: pytest.MonkeyPatch, window: str) -> None:
    monkeypatch.setenv("WHISPERER_CONTEXT_WINDOW", window)

    with pytest.raises(ValidationError, match="context_window must be an even number"):
        Settings()


def test_even_context_window_is_accepted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WHISPERER_CONTEXT_WINDOW", "8")

    assert Settings().context_window == 8


def test_load_settings_reports_invalid_values_as_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WHISPERER_CONTEXT_WINDOW", "3")

    with pytest.raises(ConfigurationError, match="context_window"):
        load_settings()
