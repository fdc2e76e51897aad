"""Message window trimming."""

from __future__ import annotations

from collections.abc import Sequence

from whisperer.core.types import Message

DEFAULT_KEEP = 20


def trim_messages(messages: Sequence[Message], keep: int = DEFAULT_KEEP) -> list[Message]:
    """Keep the system message plus the ``keep`` most recent messages.

    The first message is pinned; only the tail is truncated.
    """
    if len(messages) <= 1 + keep:
        return list(messages)
    tail = list(messages[-keep:]) if keep > 0 else []
    return [messages[0], *tail]
