"""Encrypted per-user personal token storage."""

from __future__ import annotations

import asyncio
import json
import os
import re
import threading
from pathlib import Path
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken
from loguru import logger

from whisperer.config import Settings
from whisperer.errors import CredentialStoreError, TokenValidationError

MIN_TOKEN_LENGTH = 8
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class TokenStore(Protocol):
    async def get_token(self, user_id: str) -> str | None: ...

    async def set_token(self, user_id: str, token: str) -> None: ...


def validate_token(token: str) -> str:
    """Return the stripped token, or raise when it is clearly not a token."""
    token = token.strip()
    if len(token) < MIN_TOKEN_LENGTH:
        raise TokenValidationError(f"token must be at least {MIN_TOKEN_LENGTH} characters")
    return token


class FileTokenStore:
    """One JSON file per user under ``<root>/tokens`` holding a Fernet-encrypted token.

    The key comes from ``key`` when given; otherwise it is read from
    ``<root>/tokens.key`` and generated there on first use.
    """

    def __init__(self, root: Path, *, key: str | bytes | None = None) -> None:
        self._root = root
        self._key = key.encode("utf-8") if isinstance(key, str) else key
        self._fernet: Fernet | None = None
        self._fernet_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> FileTokenStore:
        return cls(settings.token_store_path.expanduser(), key=settings.token_encryption_key)

    @property
    def key_path(self) -> Path:
        return self._root / "tokens.key"

    def path_for(self, user_id: str) -> Path:
        name = _UNSAFE_CHARS.sub("_", user_id.strip())
        if not name or name in {".", ".."}:
            raise CredentialStoreError(f"invalid user id: {user_id!r}")
        return self._root / "tokens" / f"{name}.json"

    async def get_token(self, user_id: str) -> str | None:
        if not user_id:
            return None
        return await asyncio.to_thread(self._read, user_id)

    async def set_token(self, user_id: str, token: str) -> None:
        token = validate_token(token)
        await asyncio.to_thread(self._write, user_id, token)
        logger.info("token.stored user={}", user_id)

    def _read(self, user_id: str) -> str | None:
        path = self.path_for(user_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            encrypted = data["token"]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise CredentialStoreError(f"failed to read token data for {user_id}: {exc}") from exc
        try:
            return self._get_fernet().decrypt(encrypted.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise CredentialStoreError(f"failed to decrypt token for {user_id}") from exc

    def _write(self, user_id: str, token: str) -> None:
        path = self.path_for(user_id)
        encrypted = self._get_fernet().encrypt(token.encode("utf-8")).decode("utf-8")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps({"token": encrypted}), encoding="utf-8")
            if os.name != "nt":
                os.chmod(tmp_path, 0o600)
            tmp_path.replace(path)
        except OSError as exc:
            raise CredentialStoreError(f"failed to store token for {user_id}: {exc}") from exc

    def _get_fernet(self) -> Fernet:
        # Reads and writes run in worker threads; the key must be created once.
        with self._fernet_lock:
            if self._fernet is None:
                try:
                    self._fernet = Fernet(self._key or self._load_or_create_key())
                except ValueError as exc:
                    raise CredentialStoreError("token encryption key is not a valid Fernet key") from exc
            return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self.key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        logger.info("token.key.created path={}", path)
        return key
