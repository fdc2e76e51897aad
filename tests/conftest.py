from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolated_settings_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in list(os.environ):
        if key.startswith("WHISPERER_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
