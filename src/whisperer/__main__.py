"""Whisperer CLI bootstrap."""

from __future__ import annotations

from whisperer.cli import app

if __name__ == "__main__":
    app()
