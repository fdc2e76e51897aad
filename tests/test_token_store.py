from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path

import pytest
from cryptography.fernet import Fernet

from whisperer.config import Settings
from whisperer.errors import CredentialStoreError, TokenValidationError
from whisperer.storage.token_store import FileTokenStore, validate_token


@pytest.mark.asyncio
async def test_token_round_trip_is_encrypted_at_rest(tmp_path: Path) -> None:
    store = FileTokenStore(tmp_path)

    await store.set_token("U123", "  personal-token-1  ")

    assert await store.get_token("U123") == "personal-token-1"
    stored = json.loads(store.path_for("U123").read_text(encoding="utf-8"))
    assert "personal-token-1" not in stored["token"]
    assert store.key_path.exists()


@pytest.mark.asyncio
async def test_missing_token_is_none(tmp_path: Path) -> None:
    store = FileTokenStore(tmp_path)

    assert await store.get_token("U404") is None
    assert await store.get_token("") is None


@pytest.mark.asyncio
async def test_wrong_key_raises_store_error(tmp_path: Path) -> None:
    await FileTokenStore(tmp_path, key=Fernet.generate_key()).set_token("U1", "personal-token")
    other = FileTokenStore(tmp_path, key=Fernet.generate_key().decode())

    with pytest.raises(CredentialStoreError, match="decrypt"):
        await other.get_token("U1")


@pytest.mark.asyncio
async def test_generated_key_is_reused(tmp_path: Path) -> None:
    await FileTokenStore(tmp_path).set_token("U1", "personal-token")

    assert await FileTokenStore(tmp_path).get_token("U1") == "personal-token"


@pytest.mark.asyncio
async def test_concurrent_first_writes_share_one_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    generate_key = Fernet.generate_key

    def slow_generate_key() -> bytes:
        time.sleep(0.05)
        return generate_key()

    monkeypatch.setattr(Fernet, "generate_key", staticmethod(slow_generate_key))
    store = FileTokenStore(tmp_path)
    users = [f"U{index}" for index in range(4)]

    await asyncio.gather(*(store.set_token(user, f"personal-token-{user}") for user in users))

    restarted = FileTokenStore(tmp_path)
    for user in users:
        assert await restarted.get_token(user) == f"personal-token-{user}"


@pytest.mark.asyncio
async def test_short_token_is_rejected(tmp_path: Path) -> None:
    store = FileTokenStore(tmp_path)

    with pytest.raises(TokenValidationError):
        await store.set_token("U1", "short")
    assert not store.path_for("U1").exists()


def test_user_id_is_sanitized(tmp_path: Path) -> None:
    store = FileTokenStore(tmp_path)

    assert store.path_for("../../etc/passwd").parent == tmp_path / "tokens"
    with pytest.raises(CredentialStoreError):
        store.path_for("..")


def test_validate_token_strips_whitespace() -> None:
    assert validate_token(" 12345678 ") == "12345678"


def test_from_settings_uses_configured_path(tmp_path: Path) -> None:
    key = Fernet.generate_key().decode()
    store = FileTokenStore.from_settings(Settings(token_store_path=tmp_path / "store", token_encryption_key=key))

    assert store.key_path == tmp_path / "store" / "tokens.key"
