from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest
from cryptography.fernet import Fernet
from typer.testing import CliRunner

from whisperer import cli as cli_module
from whisperer.core.types import TurnOutcome, TurnResult
from whisperer.storage.token_store import FileTokenStore


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli_module, "configure_logging", lambda **_: None)


class EchoOrchestrator:
    def __init__(self, transport: Any) -> None:
        self.transport = transport
        self.turns: list[tuple[str, str]] = []

    async def handle_turn(self, text: str, history: Any, channel_id: str, thread_ts: str, user_id: str) -> TurnResult:
        self.turns.append((text, user_id))
        await self.transport.post_message(channel_id, "working on it", thread_ts)
        return TurnResult(text=f"echo: {text}", outcome=TurnOutcome.COMPLETE, rounds=0)


class DummyRuntime:
    instances: list[DummyRuntime] = []

    def __init__(self, settings: Any) -> None:
        self.settings = settings
        self.orchestrators: list[EchoOrchestrator] = []
        self.closed = False
        DummyRuntime.instances.append(self)

    async def __aenter__(self) -> DummyRuntime:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.closed = True

    def build_orchestrator(self, transport: Any) -> EchoOrchestrator:
        orchestrator = EchoOrchestrator(transport)
        self.orchestrators.append(orchestrator)
        return orchestrator


def test_set_token_stores_encrypted_token(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    key = Fernet.generate_key().decode()
    monkeypatch.setenv("WHISPERER_TOKEN_STORE_PATH", str(tmp_path / "store"))
    monkeypatch.setenv("WHISPERER_TOKEN_ENCRYPTION_KEY", key)

    result = CliRunner().invoke(cli_module.app, ["set-token", "U1", "--token", "personal-token"])

    assert result.exit_code == 0, result.output
    assert "token stored for U1" in result.output
    store = FileTokenStore(tmp_path / "store", key=key)
    assert asyncio.run(store.get_token("U1")) == "personal-token"


def test_set_token_rejects_short_token(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("WHISPERER_TOKEN_STORE_PATH", str(tmp_path / "store"))

    result = CliRunner().invoke(cli_module.app, ["set-token", "U1", "--token", "short"])

    assert result.exit_code == 1


def test_ask_runs_one_console_turn(monkeypatch: pytest.MonkeyPatch) -> None:
    DummyRuntime.instances.clear()
    monkeypatch.setattr(cli_module, "AppRuntime", DummyRuntime)

    result = CliRunner().invoke(cli_module.app, ["ask", "show DEMO-1", "--user-id", "U1"])

    assert result.exit_code == 0, result.output
    runtime = DummyRuntime.instances[0]
    assert runtime.closed
    assert runtime.orchestrators[0].turns == [("show DEMO-1", "U1")]
