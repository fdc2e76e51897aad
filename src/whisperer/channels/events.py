"""Channel event models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class InboundTurn:
    """One user message that should start a turn."""

    channel: str
    channel_id: str
    user_id: str
    text: str
    ts: str
    thread_ts: str | None = None

    @property
    def is_thread_reply(self) -> bool:
        return bool(self.thread_ts)

    @property
    def reply_ts(self) -> str:
        """Thread to answer in: the existing thread, or a new one rooted at this message."""
        return self.thread_ts or self.ts
